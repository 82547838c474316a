"""API Dependencies — owner identity and per-request service wiring.

Invariants:
    - Every owner-scoped route receives the owner id from the X-Owner-Id header
    - A missing or blank owner id is rejected before any service runs
    - Services share the request's AsyncSession through their SqlRecordStore

Design Decisions:
    - Header stands in for auth middleware; swapping it only touches get_owner_id
"""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.core.errors import ValidationError
from storefront.infrastructure.database import get_db
from storefront.infrastructure.record_store import SqlRecordStore
from storefront.models.address import Address
from storefront.models.cart import Cart
from storefront.services.address_service import AddressService
from storefront.services.cart_service import CartService


async def get_owner_id(
    x_owner_id: str | None = Header(None, max_length=64),
) -> str:
    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise ValidationError("X-Owner-Id header is required", "X-Owner-Id")
    return owner_id


async def get_address_service(
    db: AsyncSession = Depends(get_db),
) -> AddressService:
    return AddressService(SqlRecordStore(db, Address))


async def get_cart_service(
    db: AsyncSession = Depends(get_db),
) -> CartService:
    return CartService(
        SqlRecordStore(db, Cart), ttl_days=get_settings().cart_ttl_days,
    )
