"""Owner Locks — per-owner mutual exclusion for read-modify-write sequences.

Invariants:
    - One asyncio.Lock per key; tasks on the same key run one at a time
    - Different keys never contend
    - An entry is dropped once no task holds or waits on it (no unbounded growth)

Design Decisions:
    - In-process lock complements the store-level guarantees (single transaction,
      row locks, partial unique index); it removes same-process races cheaply
    - Module-level registry: single-process uvicorn worker shares one instance,
      matching the db_manager singleton
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator


class OwnerLockRegistry:
    """Hands out reference-counted asyncio locks keyed by owner."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


def address_lock_key(owner_id: str) -> str:
    return f"address:{owner_id}"


def cart_lock_key(owner_id: str) -> str:
    return f"cart:{owner_id}"


owner_locks = OwnerLockRegistry()
