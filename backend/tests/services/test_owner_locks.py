"""Owner Locks — verifies per-key mutual exclusion and cleanup.

Tests:
    - Same key: critical sections never overlap
    - Different keys: do not wait on each other
    - Registry empties once nobody holds or waits
"""

import asyncio

import pytest

from storefront.infrastructure.owner_locks import (
    OwnerLockRegistry, address_lock_key, cart_lock_key,
)


async def test_same_key_serializes():
    locks = OwnerLockRegistry()
    inside = 0
    peak = 0

    async def critical():
        nonlocal inside, peak
        async with locks.hold("address:user-1"):
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(critical() for _ in range(5)))
    assert peak == 1


async def test_different_keys_do_not_contend():
    locks = OwnerLockRegistry()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold("cart:user-1"):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def other():
        async with locks.hold("cart:user-2"):
            entered.set()

    await asyncio.gather(holder(), other())


async def test_registry_drops_released_keys():
    locks = OwnerLockRegistry()
    async with locks.hold("address:user-1"):
        assert len(locks) == 1
    assert len(locks) == 0


async def test_registry_drops_key_after_error():
    locks = OwnerLockRegistry()
    with pytest.raises(RuntimeError):
        async with locks.hold("cart:user-1"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_lock_keys_are_namespaced():
    assert address_lock_key("u") != cart_lock_key("u")
