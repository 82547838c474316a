"""SQL Record Store — RecordStore adapter over an SQLAlchemy AsyncSession.

Invariants:
    - Filters compile to AND-ed equality predicates on mapped attributes
    - Unknown filter / patch / order keys raise ValueError (never silently ignored)
    - Bulk UPDATE/DELETE statements report the database rowcount, so
      update_one_with_precondition returns the matched count
    - Reads use populate_existing: objects in the identity map are refreshed
      after bulk writes that bypassed the unit of work
    - transaction() commits once on success and rolls back on any exception

Design Decisions:
    - synchronize_session=False on bulk writes: rowcount stays exact on every
      backend; freshness is restored by populate_existing on the next read
    - for_update maps to SELECT ... FOR UPDATE (row lock on PostgreSQL,
      dropped by the SQLite dialect)
"""

from collections.abc import Sequence
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generic, TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.repository_protocols import Filter, Patch
from storefront.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class SqlRecordStore(Generic[ModelT]):
    """Per-entity persistence over one AsyncSession."""

    def __init__(self, db: AsyncSession, model: type[ModelT]):
        self.db = db
        self.model = model

    # ─── helpers ────────────────────────────────────────────────

    def _column(self, name: str):
        if name not in self.model.__table__.columns:
            raise ValueError(
                f"{self.model.__name__} has no column '{name}'",
            )
        return getattr(self.model, name)

    def _where(self, filter: Filter) -> list:
        return [self._column(k) == v for k, v in filter.items()]

    def _order(self, order_by: Sequence[str]) -> list:
        clauses = []
        for name in order_by:
            if name.startswith("-"):
                clauses.append(self._column(name[1:]).desc())
            else:
                clauses.append(self._column(name).asc())
        return clauses

    def _values(self, patch: Patch) -> dict[str, Any]:
        for key in patch:
            self._column(key)
        return dict(patch)

    # ─── reads ──────────────────────────────────────────────────

    async def find_one(self, filter: Filter) -> ModelT | None:
        stmt = (
            select(self.model)
            .where(*self._where(filter))
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_many(
        self,
        filter: Filter,
        order_by: Sequence[str] = (),
        for_update: bool = False,
    ) -> list[ModelT]:
        stmt = (
            select(self.model)
            .where(*self._where(filter))
            .order_by(*self._order(order_by))
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_matching(self, filter: Filter) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self._where(filter))
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    # ─── writes ─────────────────────────────────────────────────

    async def update_many(self, filter: Filter, patch: Patch) -> int:
        stmt = (
            update(self.model)
            .where(*self._where(filter))
            .values(**self._values(patch))
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def update_one_with_precondition(
        self, filter: Filter, patch: Patch,
    ) -> int:
        """Conditional single-row update. Filter must include the primary key."""
        if "id" not in filter:
            raise ValueError("precondition filter must include 'id'")
        return await self.update_many(filter, patch)

    async def insert(self, record: ModelT) -> ModelT:
        self.db.add(record)
        await self.db.flush()
        return record

    async def delete_one(self, record_id: Any) -> int:
        stmt = (
            delete(self.model)
            .where(self._column("id") == record_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    # ─── transaction boundary ───────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[None, None]:
        """Commit everything written inside the block, or nothing."""
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
