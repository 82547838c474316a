"""Boundary Protocols — the persistence contract consumed by the services.

Invariants:
    - Services depend on RecordStore only, never on a concrete storage engine
    - Filters are equality maps on attribute names
    - order_by entries are attribute names, "-" prefix means descending
    - update_one_with_precondition returns the matched row count (0 or 1);
      0 means the precondition no longer holds
    - Writes issued inside transaction() commit together or not at all

Design Decisions:
    - Protocol over ABC: structural subtyping, adapters need no inheritance
    - Async in Protocol: implementations do IO; the pure core never awaits
"""

from collections.abc import Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, TypeVar

RecordT = TypeVar("RecordT")

Filter = Mapping[str, Any]
Patch = Mapping[str, Any]


class RecordStore(Protocol[RecordT]):
    """Contract for per-entity persistence — implemented by infrastructure."""

    async def find_one(self, filter: Filter) -> RecordT | None: ...

    async def find_many(
        self,
        filter: Filter,
        order_by: Sequence[str] = (),
        for_update: bool = False,
    ) -> list[RecordT]: ...

    async def count_matching(self, filter: Filter) -> int: ...

    async def update_many(self, filter: Filter, patch: Patch) -> int: ...

    async def update_one_with_precondition(
        self, filter: Filter, patch: Patch,
    ) -> int: ...

    async def insert(self, record: RecordT) -> RecordT: ...

    async def delete_one(self, record_id: Any) -> int: ...

    def transaction(self) -> AbstractAsyncContextManager[None]: ...
