"""Cart Service — owner carts whose summary never diverges from their items.

Invariants:
    - Each owner has exactly one cart, created on first access
    - Every mutation runs under the owner's lock: load -> pure core mutation ->
      compute_summary -> ONE conditional UPDATE (items + summary + version + timestamps)
    - The UPDATE is conditioned on (id, version); zero matched rows means a
      concurrent writer won and raises ConsistencyConflictError
    - A mutation that leaves the item list unchanged issues no write
      (idempotent remove, repeated restore, clear of an empty cart)
    - An expired cart is read as empty; the next write starts a fresh TTL
    - A unique owner_id violation (another process created the cart first)
      surfaces as ConsistencyConflictError; other integrity errors propagate

Design Decisions:
    - Items stored as a JSON list on the cart row: lines have no lifecycle of
      their own, so one row update is the atomic unit
    - Mutations expressed as functions of (items, now): the same write path
      serves add, set quantity, remove, clear, replace and merge
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError

from storefront.core.cart_merge import (
    ClientCartItem,
    merge_client_items,
    replace_items,
)
from storefront.core.cart_summary import (
    CartItem,
    ServiceSnapshot,
    add_item,
    clear_items,
    compute_summary,
    remove_item,
    set_item_quantity,
)
from storefront.core.errors import (
    ConsistencyConflictError,
    ErrorContext,
    LimitExceededError,
    NotFoundError,
)
from storefront.core.repository_protocols import RecordStore
from storefront.infrastructure.owner_locks import (
    OwnerLockRegistry, cart_lock_key, owner_locks,
)
from storefront.models.cart import Cart

logger = logging.getLogger(__name__)

DEFAULT_CART_TTL_DAYS = 30

# Text the unique owner_id violation carries (SQLite column list, PostgreSQL index name)
OWNER_UNIQUE_MARKERS = ("UNIQUE constraint failed: carts.owner_id", "ix_carts_owner_id")

Mutation = Callable[[list[CartItem], datetime], list[CartItem]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CartService:
    """Cart commands (add, set quantity, remove, clear, save, restore) and get."""

    def __init__(
        self,
        store: RecordStore[Cart],
        locks: OwnerLockRegistry = owner_locks,
        ttl_days: int = DEFAULT_CART_TTL_DAYS,
    ):
        self.store = store
        self.locks = locks
        self.ttl = timedelta(days=ttl_days)

    # ─── internals ──────────────────────────────────────────────

    async def _load_or_create(self, owner_id: str, now: datetime) -> Cart:
        cart = await self.store.find_one({"owner_id": owner_id})
        if cart is not None:
            return cart
        logger.info(
            f"Creating cart for owner {owner_id}",
            extra={"owner_id": owner_id},
        )
        return await self.store.insert(Cart(
            owner_id=owner_id,
            items=[],
            version=1,
            last_updated=now,
            expires_at=now + self.ttl,
            created_at=now,
            updated_at=now,
        ))

    def _current_items(self, cart: Cart, now: datetime) -> list[CartItem]:
        if cart.is_expired(now):
            logger.info(
                f"Cart {cart.id} for owner {cart.owner_id} expired; starting empty",
                extra={"owner_id": cart.owner_id, "record_id": str(cart.id)},
            )
            return []
        return cart.line_items

    async def _write(
        self, cart: Cart, items: list[CartItem], now: datetime,
    ) -> None:
        summary = compute_summary(items)
        matched = await self.store.update_one_with_precondition(
            {"id": cart.id, "version": cart.version},
            {
                "items": [i.to_record() for i in items],
                "total_services": summary.total_services,
                "total_items": summary.total_items,
                "subtotal": summary.subtotal,
                "tax_amount": summary.tax_amount,
                "total": summary.total,
                "version": cart.version + 1,
                "last_updated": now,
                "expires_at": now + self.ttl,
                "updated_at": now,
            },
        )
        if matched == 0:
            raise ConsistencyConflictError(
                "Cart was modified concurrently; retry with fresh state",
                ErrorContext(
                    owner_id=cart.owner_id,
                    record_id=str(cart.id),
                    debug_info={"expected_version": cart.version},
                ),
            )

    async def _mutate(self, owner_id: str, mutation: Mutation) -> Cart:
        now = _now()
        async with self.locks.hold(cart_lock_key(owner_id)):
            try:
                async with self.store.transaction():
                    cart = await self._load_or_create(owner_id, now)
                    items = self._current_items(cart, now)
                    updated = mutation(items, now)
                    if updated != cart.line_items:
                        await self._write(cart, updated, now)
            except (NotFoundError, LimitExceededError) as e:
                e.context.owner_id = e.context.owner_id or owner_id
                raise
            except IntegrityError as e:
                if not any(m in str(e.orig) for m in OWNER_UNIQUE_MARKERS):
                    raise
                raise ConsistencyConflictError(
                    "Cart was created concurrently; retry with fresh state",
                    ErrorContext(owner_id=owner_id, cause=str(e.orig)),
                ) from e
            return await self.store.find_one({"owner_id": owner_id})

    # ─── queries ────────────────────────────────────────────────

    async def get_cart(self, owner_id: str) -> Cart:
        """Owner's cart, created empty on first access; expired carts come back empty."""
        return await self._mutate(owner_id, lambda items, now: items)

    # ─── commands ───────────────────────────────────────────────

    async def add_item(self, owner_id: str, snapshot: ServiceSnapshot) -> Cart:
        """Add one unit of a service (new line, or quantity + 1 up to the cap)."""
        cart = await self._mutate(
            owner_id, lambda items, now: add_item(items, snapshot, now),
        )
        logger.info(
            f"Service {snapshot.service_id} added to cart of owner {owner_id}",
            extra={"owner_id": owner_id, "record_id": snapshot.service_id},
        )
        return cart

    async def set_item_quantity(
        self, owner_id: str, service_id: str, quantity: int,
    ) -> Cart:
        """Overwrite a line's quantity; zero or below removes the line."""
        return await self._mutate(
            owner_id,
            lambda items, now: set_item_quantity(items, service_id, quantity, now),
        )

    async def remove_item(self, owner_id: str, service_id: str) -> Cart:
        """Remove a line. Absent service_id is a no-op."""
        return await self._mutate(
            owner_id, lambda items, now: remove_item(items, service_id),
        )

    async def clear(self, owner_id: str) -> Cart:
        return await self._mutate(owner_id, lambda items, now: clear_items())

    async def save_cart(
        self, owner_id: str, client_items: list[ClientCartItem],
    ) -> Cart:
        """Replace the server item list with the client's."""
        cart = await self._mutate(
            owner_id, lambda items, now: replace_items(client_items, now),
        )
        logger.info(
            f"Cart of owner {owner_id} replaced with {len(cart.items)} item(s)",
            extra={"owner_id": owner_id, "record_id": str(cart.id)},
        )
        return cart

    async def restore_cart(
        self, owner_id: str, client_items: list[ClientCartItem],
    ) -> Cart:
        """Merge a client list into the server cart: server wins, client fills gaps.

        A missing cart is created first, so merging into its empty item list
        seeds it with the client items.
        """
        appended: list[str] = []

        def merge(items: list[CartItem], now: datetime) -> list[CartItem]:
            merged, added = merge_client_items(items, client_items, now)
            appended.extend(added)
            return merged

        cart = await self._mutate(owner_id, merge)
        logger.info(
            f"Cart of owner {owner_id} restored ({len(appended)} item(s) appended)",
            extra={"owner_id": owner_id, "record_id": str(cart.id)},
        )
        return cart
