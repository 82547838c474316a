"""Address Service — owner-scoped address lifecycle that keeps one active default per owner.

Invariants:
    - Every mutation holds the owner's lock and writes inside ONE transaction
    - Clear-then-set ordering: other defaults are cleared before the target is set
      (or the new row inserted), so the partial unique index never trips on our own writes
    - set_default's final conditional update must match exactly one row, else
      ConsistencyConflictError and the whole transaction is rolled back
    - An integrity violation on the one-default index (another process won the race)
      surfaces as ConsistencyConflictError; any other integrity error
      propagates to the session manager as a DatabaseError
    - Soft delete clears is_default and never promotes another address
    - Restore never restores default status
    - The returned row and active set are read before the owner lock is released

Design Decisions:
    - Explicit service methods instead of a save hook: the whole clear-then-set
      sequence is visible at one transaction boundary
    - Owner rows read with for_update before deciding: row locks on PostgreSQL,
      in-process lock covers SQLite
    - No retries here: the caller retries ConsistencyConflictError once
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncGenerator, Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from storefront.core.domain_types import DefaultReason
from storefront.core.enforce_default import (
    check_address_capacity,
    decide_default_on_create,
    soft_delete_message,
)
from storefront.core.errors import (
    ConsistencyConflictError,
    ErrorContext,
    NotFoundError,
)
from storefront.core.repository_protocols import RecordStore
from storefront.infrastructure.owner_locks import (
    OwnerLockRegistry, address_lock_key, owner_locks,
)
from storefront.models.address import Address

logger = logging.getLogger(__name__)

# Caller-settable columns; owner, id, flags and timestamps are managed here
ADDRESS_FIELDS = frozenset({
    "house_flat_number", "street_area_name", "complete_address", "landmark",
    "pincode", "city", "state", "country", "phone", "address_type",
})

# Text a one-default index violation carries (SQLite column list, PostgreSQL index name)
ONE_DEFAULT_MARKERS = (
    "UNIQUE constraint failed: addresses.owner_id",
    "uq_addresses_owner_active_default",
)


@dataclass
class AddressResult:
    """Outcome of an address mutation: the touched row plus the owner's active set."""
    address: Address
    addresses: list[Address]
    message: str
    default_reason: DefaultReason | None = None
    was_default: bool = False


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if key not in ADDRESS_FIELDS or value is None:
            continue
        values[key] = value.value if isinstance(value, Enum) else value
    return values


class AddressService:
    """Create / default / delete / restore addresses under the one-default rule."""

    def __init__(
        self,
        store: RecordStore[Address],
        locks: OwnerLockRegistry = owner_locks,
    ):
        self.store = store
        self.locks = locks

    @asynccontextmanager
    async def _transaction(
        self, owner_id: str, record_id: UUID | None = None,
    ) -> AsyncGenerator[None, None]:
        """One store transaction; a one-default index violation becomes a conflict."""
        try:
            async with self.store.transaction():
                yield
        except IntegrityError as e:
            if not any(m in str(e.orig) for m in ONE_DEFAULT_MARKERS):
                raise
            raise ConsistencyConflictError(
                "Default address changed concurrently; retry with fresh state",
                ErrorContext(
                    owner_id=owner_id,
                    record_id=str(record_id) if record_id else None,
                    cause=str(e.orig),
                ),
            ) from e

    async def _lock_active(self, owner_id: str) -> list[Address]:
        return await self.store.find_many(
            {"owner_id": owner_id, "is_active": True}, for_update=True,
        )

    async def _clear_defaults(self, owner_id: str, now: datetime) -> int:
        return await self.store.update_many(
            {"owner_id": owner_id, "is_active": True, "is_default": True},
            {"is_default": False, "updated_at": now},
        )

    async def _update_active(
        self, owner_id: str, address_id: UUID, patch: dict[str, Any],
    ) -> None:
        matched = await self.store.update_one_with_precondition(
            {"id": address_id, "owner_id": owner_id, "is_active": True}, patch,
        )
        if matched == 0:
            raise ConsistencyConflictError(
                "Address changed while being updated",
                ErrorContext(owner_id=owner_id, record_id=str(address_id)),
            )

    async def _make_default(
        self, owner_id: str, address_id: UUID, now: datetime,
    ) -> None:
        await self._clear_defaults(owner_id, now)
        matched = await self.store.update_one_with_precondition(
            {"id": address_id, "owner_id": owner_id, "is_active": True},
            {"is_default": True, "updated_at": now},
        )
        if matched == 0:
            raise ConsistencyConflictError(
                "Address stopped matching while being set as default",
                ErrorContext(owner_id=owner_id, record_id=str(address_id)),
            )

    async def _result(
        self,
        owner_id: str,
        address_id: UUID,
        message: str,
        reason: DefaultReason | None = None,
        was_default: bool = False,
    ) -> AddressResult:
        address = await self.store.find_one({"id": address_id})
        return AddressResult(
            address=address,
            addresses=await self.list_addresses(owner_id),
            message=message,
            default_reason=reason,
            was_default=was_default,
        )

    # ─── queries ────────────────────────────────────────────────

    async def list_addresses(
        self, owner_id: str, include_inactive: bool = False,
    ) -> list[Address]:
        """Owner's addresses, default first, then newest first."""
        filter: dict[str, Any] = {"owner_id": owner_id}
        if not include_inactive:
            filter["is_active"] = True
        return await self.store.find_many(
            filter, order_by=("-is_default", "-created_at"),
        )

    async def get_address(self, owner_id: str, address_id: UUID) -> Address:
        address = await self.store.find_one(
            {"id": address_id, "owner_id": owner_id},
        )
        if address is None:
            raise NotFoundError("Address", str(address_id), owner_id)
        return address

    async def get_default_address(self, owner_id: str) -> Address:
        address = await self.store.find_one(
            {"owner_id": owner_id, "is_active": True, "is_default": True},
        )
        if address is None:
            raise NotFoundError("Default address", owner_id, owner_id)
        return address

    # ─── commands ───────────────────────────────────────────────

    async def create_address(
        self,
        owner_id: str,
        fields: dict[str, Any],
        requested_default: bool = False,
    ) -> AddressResult:
        """Insert an address; it becomes default when first, when none exists, or on request."""
        values = _clean_fields(fields)
        now = _now()
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id):
                active = await self._lock_active(owner_id)
                check_address_capacity(owner_id, len(active))
                decision = decide_default_on_create(
                    active_count=len(active),
                    has_existing_default=any(a.is_default for a in active),
                    requested_default=requested_default,
                )
                if decision.should_be_default:
                    await self._clear_defaults(owner_id, now)
                address = await self.store.insert(Address(
                    owner_id=owner_id,
                    is_default=decision.should_be_default,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    **values,
                ))
                address_id = address.id

            logger.info(
                f"Address {address_id} created for owner {owner_id} "
                f"(default={decision.should_be_default}, reason={decision.reason.value})",
                extra={
                    "owner_id": owner_id,
                    "record_id": str(address_id),
                    "reason": decision.reason.value,
                },
            )
            return await self._result(
                owner_id, address_id, decision.message, decision.reason,
            )

    async def set_default(self, owner_id: str, address_id: UUID) -> AddressResult:
        """Make the address the owner's only default."""
        now = _now()
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id, address_id):
                active = await self._lock_active(owner_id)
                if not any(a.id == address_id for a in active):
                    raise NotFoundError("Address", str(address_id), owner_id)
                await self._make_default(owner_id, address_id, now)

            logger.info(
                f"Address {address_id} set as default for owner {owner_id}",
                extra={"owner_id": owner_id, "record_id": str(address_id)},
            )
            return await self._result(
                owner_id, address_id, "Default address updated successfully",
            )

    async def update_address(
        self,
        owner_id: str,
        address_id: UUID,
        fields: dict[str, Any],
        requested_default: bool | None = None,
    ) -> AddressResult:
        """Patch location fields; requested_default True/False moves the default flag."""
        values = _clean_fields(fields)
        now = _now()
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id, address_id):
                active = await self._lock_active(owner_id)
                if not any(a.id == address_id for a in active):
                    raise NotFoundError("Address", str(address_id), owner_id)

                patch: dict[str, Any] = dict(values)
                if requested_default is False:
                    patch["is_default"] = False
                if patch:
                    patch["updated_at"] = now
                    await self._update_active(owner_id, address_id, patch)
                if requested_default is True:
                    await self._make_default(owner_id, address_id, now)

            logger.info(
                f"Address {address_id} updated for owner {owner_id}",
                extra={"owner_id": owner_id, "record_id": str(address_id)},
            )
            return await self._result(
                owner_id, address_id, "Address updated successfully",
            )

    async def soft_delete(self, owner_id: str, address_id: UUID) -> AddressResult:
        """Deactivate an address. A deleted default leaves the owner with no default."""
        now = _now()
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id, address_id):
                target = await self.store.find_one(
                    {"id": address_id, "owner_id": owner_id, "is_active": True},
                )
                if target is None:
                    raise NotFoundError("Address", str(address_id), owner_id)
                was_default = target.is_default
                await self._update_active(
                    owner_id, address_id,
                    {"is_active": False, "is_default": False, "updated_at": now},
                )

            if was_default:
                logger.info(
                    f"Default address {address_id} deleted for owner {owner_id}; "
                    f"no fallback default chosen",
                    extra={"owner_id": owner_id, "record_id": str(address_id)},
                )
            else:
                logger.info(
                    f"Address {address_id} deleted for owner {owner_id}",
                    extra={"owner_id": owner_id, "record_id": str(address_id)},
                )
            return await self._result(
                owner_id, address_id, soft_delete_message(was_default),
                was_default=was_default,
            )

    async def restore(self, owner_id: str, address_id: UUID) -> AddressResult:
        """Reactivate a soft-deleted address (never as default)."""
        now = _now()
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id, address_id):
                target = await self.store.find_one(
                    {"id": address_id, "owner_id": owner_id, "is_active": False},
                )
                if target is None:
                    raise NotFoundError("Inactive address", str(address_id), owner_id)
                active = await self._lock_active(owner_id)
                check_address_capacity(owner_id, len(active), action="restore")
                matched = await self.store.update_one_with_precondition(
                    {"id": address_id, "owner_id": owner_id, "is_active": False},
                    {"is_active": True, "is_default": False, "updated_at": now},
                )
                if matched == 0:
                    raise ConsistencyConflictError(
                        "Address changed while being restored",
                        ErrorContext(owner_id=owner_id, record_id=str(address_id)),
                    )

            logger.info(
                f"Address {address_id} restored for owner {owner_id}",
                extra={"owner_id": owner_id, "record_id": str(address_id)},
            )
            return await self._result(
                owner_id, address_id, "Address restored successfully",
            )

    async def hard_delete(self, owner_id: str, address_id: UUID) -> None:
        """Permanently remove a soft-deleted address."""
        async with self.locks.hold(address_lock_key(owner_id)):
            async with self._transaction(owner_id, address_id):
                target = await self.store.find_one(
                    {"id": address_id, "owner_id": owner_id, "is_active": False},
                )
                if target is None:
                    raise NotFoundError("Inactive address", str(address_id), owner_id)
                await self.store.delete_one(address_id)

        logger.info(
            f"Address {address_id} permanently deleted for owner {owner_id}",
            extra={"owner_id": owner_id, "record_id": str(address_id)},
        )
