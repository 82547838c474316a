"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Every row is scoped by owner_id

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before
      create_all / autogenerate runs
"""

from storefront.models.address import Address  # noqa: F401
from storefront.models.cart import Cart  # noqa: F401
