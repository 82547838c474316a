"""Cart ORM — one cart per owner with embedded item snapshots and a derived summary.

Invariants:
    - owner_id unique: exactly one cart per owner
    - items is a JSON list of CartItem records (core/cart_summary.py format)
    - Summary columns always equal compute_summary(items); both are written
      by the same UPDATE statement
    - version increments on every write (optimistic concurrency precondition)
    - expires_at rolls forward on every write

Design Decisions:
    - JSON column for items: lines have no independent lifecycle and the
      item list + summary must land in one write
    - Summary as real columns (not JSON): queryable without parsing items
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from storefront.core.cart_summary import CartItem, CartSummary
from storefront.db.base import Base


class Cart(Base):
    """Cart aggregate — owns its item lines."""
    __tablename__ = "carts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True,
    )
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Summary (derived)
    total_services: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def line_items(self) -> list[CartItem]:
        return [CartItem.from_record(r) for r in self.items or []]

    @property
    def summary(self) -> CartSummary:
        return CartSummary(
            total_services=self.total_services,
            total_items=self.total_items,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total=self.total,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite drops tzinfo on the way back
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now > expires_at
