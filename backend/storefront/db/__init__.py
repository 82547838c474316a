"""Database Declarations — the SQLAlchemy declarative Base shared by all models.

Invariants:
    - Every ORM model inherits from db/base.py Base
    - Engines and sessions live in infrastructure/database.py, not here

Design Decisions:
    - Base kept apart from the session manager so models and Alembic import it
      without touching connection setup
"""
