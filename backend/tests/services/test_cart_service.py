"""Cart Service — verifies persisted carts keep summary == f(items) on SQLite.

Invariants:
    - Summary columns equal compute_summary(items) after every command
    - Quantity cap: adding at 10 fails; set quantity 0 removes and recomputes
    - restore_cart: server wins, client fills gaps, repeating it writes nothing
    - save_cart replaces the item list
    - Expired carts come back empty
    - A stale version precondition raises ConsistencyConflictError
    - Two writers creating the same cart: the loser gets a retryable conflict
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

from storefront.api.conflict_retry import retry_on_conflict
from storefront.core.cart_merge import ClientCartItem
from storefront.core.cart_summary import ServiceSnapshot, compute_summary
from storefront.core.domain_types import ServiceCategory
from storefront.core.errors import (
    ConsistencyConflictError, LimitExceededError, NotFoundError,
)
from storefront.db.base import Base
from storefront.infrastructure.owner_locks import OwnerLockRegistry
from storefront.infrastructure.record_store import SqlRecordStore
from storefront.models.cart import Cart
from storefront.services.cart_service import CartService

OWNER = "user-1"


def _snapshot(service_id="svc-1", price=500.0) -> ServiceSnapshot:
    return ServiceSnapshot(
        service_id=service_id,
        name=f"Service {service_id}",
        description="",
        price=price,
        image="",
        category=ServiceCategory.PREMIUM,
    )


def _client(service_id, quantity=None, price=500.0) -> ClientCartItem:
    return ClientCartItem(_snapshot(service_id, price), quantity)


def _assert_summary_consistent(cart: Cart):
    expected = compute_summary(cart.line_items)
    assert cart.total_services == expected.total_services
    assert cart.total_items == expected.total_items
    assert cart.subtotal == pytest.approx(expected.subtotal)
    assert cart.tax_amount == pytest.approx(cart.subtotal * 0.18)
    assert cart.total == pytest.approx(cart.subtotal * 1.18)


# ─── get / add ──────────────────────────────────────────────────

async def test_get_cart_creates_empty_cart(cart_service):
    cart = await cart_service.get_cart(OWNER)
    assert cart.owner_id == OWNER
    assert cart.items == []
    assert cart.total == 0
    assert cart.version == 1


async def test_get_cart_returns_same_cart(cart_service):
    first = await cart_service.get_cart(OWNER)
    second = await cart_service.get_cart(OWNER)
    assert first.id == second.id


async def test_add_item_updates_summary(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a", 100.0))
    await cart_service.add_item(OWNER, _snapshot("a", 100.0))
    cart = await cart_service.add_item(OWNER, _snapshot("b", 300.0))

    assert cart.total_services == 2
    assert cart.total_items == 3
    assert cart.subtotal == pytest.approx(500.0)
    assert cart.total == pytest.approx(590.0)
    _assert_summary_consistent(cart)


async def test_every_write_bumps_version_and_ttl(cart_service):
    created = await cart_service.get_cart(OWNER)
    version, expires_at = created.version, created.expires_at
    cart = await cart_service.add_item(OWNER, _snapshot())
    assert cart.version == version + 1
    assert cart.expires_at >= expires_at


async def test_add_at_quantity_cap_fails(cart_service):
    await cart_service.add_item(OWNER, _snapshot())
    await cart_service.set_item_quantity(OWNER, "svc-1", 10)
    with pytest.raises(LimitExceededError) as exc:
        await cart_service.add_item(OWNER, _snapshot())
    assert exc.value.context.owner_id == OWNER
    cart = await cart_service.get_cart(OWNER)
    assert cart.total_items == 10


async def test_add_twenty_first_service_fails(cart_service):
    for i in range(20):
        await cart_service.add_item(OWNER, _snapshot(f"s{i}"))
    with pytest.raises(LimitExceededError):
        await cart_service.add_item(OWNER, _snapshot("s20"))


# ─── set quantity / remove / clear ──────────────────────────────

async def test_set_quantity_zero_removes_and_recomputes(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a", 100.0))
    await cart_service.add_item(OWNER, _snapshot("b", 200.0))
    cart = await cart_service.set_item_quantity(OWNER, "a", 0)
    assert [i.service_id for i in cart.line_items] == ["b"]
    assert cart.subtotal == pytest.approx(200.0)
    _assert_summary_consistent(cart)


async def test_set_quantity_absent_not_found(cart_service):
    with pytest.raises(NotFoundError) as exc:
        await cart_service.set_item_quantity(OWNER, "missing", 2)
    assert exc.value.context.owner_id == OWNER


async def test_remove_absent_item_is_noop(cart_service):
    before = await cart_service.add_item(OWNER, _snapshot())
    version, items = before.version, list(before.items)
    after = await cart_service.remove_item(OWNER, "missing")
    assert after.version == version
    assert after.items == items


async def test_remove_item(cart_service):
    await cart_service.add_item(OWNER, _snapshot())
    cart = await cart_service.remove_item(OWNER, "svc-1")
    assert cart.items == []
    assert cart.total == 0


async def test_clear(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a"))
    await cart_service.add_item(OWNER, _snapshot("b"))
    cart = await cart_service.clear(OWNER)
    assert cart.items == []
    assert cart.total_services == 0
    assert cart.subtotal == 0


# ─── save / restore ─────────────────────────────────────────────

async def test_restore_seeds_new_cart(cart_service):
    cart = await cart_service.restore_cart(OWNER, [_client("a", 2), _client("b")])
    assert [(i.service_id, i.quantity) for i in cart.line_items] == [("a", 2), ("b", 1)]
    _assert_summary_consistent(cart)


async def test_restore_server_wins(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a", 100.0))
    cart = await cart_service.restore_cart(
        OWNER, [_client("a", 5, price=999.0), _client("b", 1, price=50.0)],
    )
    lines = {i.service_id: i for i in cart.line_items}
    assert lines["a"].quantity == 1
    assert lines["a"].price == 100.0
    assert lines["b"].quantity == 1
    _assert_summary_consistent(cart)


async def test_restore_twice_is_idempotent(cart_service):
    client = [_client("a", 2), _client("b")]
    once = await cart_service.restore_cart(OWNER, client)
    version, items, total = once.version, list(once.items), once.total
    twice = await cart_service.restore_cart(OWNER, client)
    assert twice.version == version
    assert twice.items == items
    assert twice.total == total


async def test_save_replaces_items(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a"))
    cart = await cart_service.save_cart(OWNER, [_client("b", 3, price=10.0)])
    assert [i.service_id for i in cart.line_items] == ["b"]
    assert cart.subtotal == pytest.approx(30.0)
    _assert_summary_consistent(cart)


async def test_save_empty_list_clears(cart_service):
    await cart_service.add_item(OWNER, _snapshot("a"))
    cart = await cart_service.save_cart(OWNER, [])
    assert cart.items == []


# ─── expiry / concurrency ───────────────────────────────────────

async def test_expired_cart_reads_empty(cart_service, cart_store):
    cart = await cart_service.add_item(OWNER, _snapshot())
    async with cart_store.transaction():
        await cart_store.update_many(
            {"id": cart.id},
            {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
        )
    refreshed = await cart_service.get_cart(OWNER)
    assert refreshed.items == []
    assert refreshed.total == 0
    assert not refreshed.is_expired()


async def test_ttl_follows_setting(test_db):
    service = CartService(
        SqlRecordStore(test_db, Cart), locks=OwnerLockRegistry(), ttl_days=7,
    )
    cart = await service.get_cart(OWNER)
    expires_at = cart.expires_at.replace(tzinfo=timezone.utc)
    created_at = cart.created_at.replace(tzinfo=timezone.utc)
    assert expires_at - created_at == timedelta(days=7)


class _RacingStore(SqlRecordStore):
    """Bumps the version right before each conditional write (a concurrent writer)."""

    async def update_one_with_precondition(self, filter, patch):
        await self.update_many(
            {"id": filter["id"]}, {"version": filter["version"] + 100},
        )
        return await super().update_one_with_precondition(filter, patch)


async def test_stale_version_raises_conflict(test_db):
    service = CartService(_RacingStore(test_db, Cart), locks=OwnerLockRegistry())
    with pytest.raises(ConsistencyConflictError) as exc:
        await service.add_item(OWNER, _snapshot())
    assert exc.value.context.owner_id == OWNER
    assert exc.value.context.debug_info == {"expected_version": 1}
    # the transaction rolled back: no cart row survived
    assert await SqlRecordStore(test_db, Cart).find_one({"owner_id": OWNER}) is None


class _LateLookupStore(SqlRecordStore):
    """The first lookup misses, as if another process created the cart right after it."""

    def __init__(self, db, model):
        super().__init__(db, model)
        self.missed = False

    async def find_one(self, filter):
        if not self.missed:
            self.missed = True
            return None
        return await super().find_one(filter)


async def test_duplicate_cart_creation_raises_conflict(cart_service, test_db):
    existing_id = (await cart_service.get_cart(OWNER)).id

    service = CartService(
        _LateLookupStore(test_db, Cart), locks=OwnerLockRegistry(),
    )
    with pytest.raises(ConsistencyConflictError) as exc:
        await service.add_item(OWNER, _snapshot())
    assert exc.value.message == (
        "Cart was created concurrently; retry with fresh state"
    )
    assert exc.value.context.owner_id == OWNER
    assert "carts.owner_id" in exc.value.context.cause

    # a retry finds the cart the other writer created
    cart = await service.add_item(OWNER, _snapshot())
    assert cart.id == existing_id
    assert cart.total_items == 1


async def test_cart_creation_across_lock_registries(tmp_path):
    """Two sessions with separate lock registries stand in for two processes."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carts.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with factory() as db_a, factory() as db_b:
            services = [
                CartService(SqlRecordStore(db, Cart), locks=OwnerLockRegistry())
                for db in (db_a, db_b)
            ]
            results = await asyncio.gather(
                *(s.add_item(OWNER, _snapshot()) for s in services),
                return_exceptions=True,
            )
            for service, result in zip(services, results):
                if isinstance(result, Exception):
                    assert isinstance(result, ConsistencyConflictError)
                    await retry_on_conflict(
                        lambda: service.add_item(OWNER, _snapshot()), OWNER,
                    )

        async with factory() as db:
            store = SqlRecordStore(db, Cart)
            assert await store.count_matching({"owner_id": OWNER}) == 1
            cart = await store.find_one({"owner_id": OWNER})
            assert [i.quantity for i in cart.line_items] == [2]
            _assert_summary_consistent(cart)
    finally:
        await engine.dispose()
