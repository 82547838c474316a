"""Infrastructure Layer — persistence adapters and cross-cutting concerns.

Invariants:
    - Infrastructure implements the protocols declared in core/, never the reverse
    - All SQLAlchemy failures mapped to DatabaseError at the session boundary

Design Decisions:
    - Adapters over raw sessions: services see RecordStore, not AsyncSession
"""
