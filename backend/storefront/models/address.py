"""Address ORM — persists an owner's delivery/visit locations.

Invariants:
    - Always belongs to exactly one owner (owner_id, opaque user id)
    - Created active (is_active=True); soft delete flips is_active and clears is_default
    - At most one row per owner with is_active AND is_default
      (partial unique index uq_addresses_owner_active_default)

Design Decisions:
    - Partial unique index backs the service-level invariant across processes:
      a racing writer fails with an integrity error instead of leaving two defaults
    - owner_id indexed with is_active/is_default: every service query filters on them
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from storefront.core.domain_types import AddressType
from storefront.db.base import Base


class Address(Base):
    """Address entity — one of up to ten active locations per owner."""
    __tablename__ = "addresses"
    __table_args__ = (
        Index("ix_addresses_owner_active", "owner_id", "is_active"),
        Index("ix_addresses_owner_default", "owner_id", "is_default"),
        Index(
            "uq_addresses_owner_active_default", "owner_id",
            unique=True,
            postgresql_where=text("is_active AND is_default"),
            sqlite_where=text("is_active = 1 AND is_default = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    house_flat_number: Mapped[str] = mapped_column(String(50), nullable=False)
    street_area_name: Mapped[str] = mapped_column(String(100), nullable=False)
    complete_address: Mapped[str] = mapped_column(String(200), nullable=False)
    landmark: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str] = mapped_column(String(6), nullable=False, index=True)
    city: Mapped[str | None] = mapped_column(String(50), nullable=True)
    state: Mapped[str] = mapped_column(
        String(50), nullable=False, default="Bihar",
    )
    country: Mapped[str] = mapped_column(
        String(50), nullable=False, default="India",
    )
    phone: Mapped[str] = mapped_column(String(10), nullable=False)
    address_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=AddressType.HOME.value,
    )

    is_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
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
    def full_address(self) -> str:
        parts = [
            self.house_flat_number,
            self.street_area_name,
            self.complete_address,
            self.landmark,
            self.city,
            self.state,
            self.pincode,
            self.country,
            f"Phone: {self.phone}" if self.phone else None,
        ]
        return ", ".join(p for p in parts if p)
