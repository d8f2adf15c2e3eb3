"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and extend it with
entity-specific queries.

Unit of work:
- Every repository built for a request shares that request's session.
  Multi-row lifecycle operations *stage* their changes (``add``,
  ``add_all``, ``stage_delete`` or plain attribute mutation on loaded rows)
  and then call :meth:`commit` exactly once, so either every change lands or
  none does.
- ``create`` and ``update`` are single-entity shortcuts that stage and
  commit in one call.
- Reads after a commit see the committed state because the session is
  shared and ``refresh`` is called on the returned entities.

Error policy:
- **IntegrityError** is NOT caught here; the service decides whether it is
  a 409 (duplicate key) or a 422 (constraint / FK violation).
- **OperationalError** (connection loss, deadlock) rolls the session back
  and is re-raised, so the session never leaks a dirty transaction.
"""

import logging
from typing import Any, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlmodel import SQLModel

from spv_ledger.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).

    Resilience:
        Every database round-trip is routed through the global
        ``db_circuit_breaker``.  After enough consecutive store failures the
        circuit opens and calls fail fast with ``CircuitBreakerError``
        (rendered as 503) instead of queueing behind a dead connection pool.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # ── Internal helpers ──

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        """Route any async callable through the circuit breaker."""
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _scalars(self, stmt: Any) -> List[ModelType]:
        async def _run() -> List[Any]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_run)

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError during %s for %s", operation, self.model.__name__)
            raise

    # ── Queries ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    async def get_many(self, ids: Iterable[Any]) -> List[ModelType]:
        """
        Fetch every entity whose primary key is in ``ids``.

        Missing ids are simply absent from the result; callers compare
        lengths to report which ones did not resolve.
        """
        ids = list(ids)
        if not ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(ids))  # type: ignore[attr-defined]
        return await self._scalars(stmt)

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """
        Return a paginated list of entities.

        Results are ordered by primary key so pagination is deterministic;
        without an explicit ORDER BY, PostgreSQL returns rows in heap order,
        which can shift between queries.
        """
        pk_columns = self.model.__table__.primary_key.columns  # type: ignore[attr-defined]
        stmt = select(self.model).order_by(*pk_columns).offset(skip).limit(limit)
        return await self._scalars(stmt)

    # ── Unit of work ──

    def add(self, entity: ModelType) -> ModelType:
        """Stage an insert; nothing is written until :meth:`commit`."""
        self.db.add(entity)
        return entity

    def add_all(self, entities: Sequence[ModelType]) -> Sequence[ModelType]:
        self.db.add_all(entities)
        return entities

    async def stage_delete(self, entity: ModelType) -> None:
        await self.db.delete(entity)

    async def commit(self, *refresh: ModelType) -> None:
        """
        Commit everything staged on the session, then refresh ``refresh``.

        One call per logical operation.  IntegrityError propagates untouched
        (the caller rolls back and translates it).
        """

        async def _commit_and_refresh() -> None:
            await self._commit("commit")
            for entity in refresh:
                await self.db.refresh(entity)

        await self._execute_with_circuit_breaker(_commit_and_refresh)

    async def rollback(self) -> None:
        await self.db.rollback()

    # ── Single-entity shortcuts ──

    async def create(self, obj_in: ModelType) -> ModelType:
        """Insert a new entity, commit, and return the refreshed instance."""

        async def _create() -> ModelType:
            self.db.add(obj_in)
            await self._commit("create")
            await self.db.refresh(obj_in)
            return obj_in

        return await self._execute_with_circuit_breaker(_create)

    async def update(self, entity: ModelType) -> ModelType:
        """
        Persist changes to an already-tracked entity.

        The caller mutates the entity's attributes first; we merge, commit,
        then refresh so the returned object reflects DB-side defaults.
        """

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit("update")
            await self.db.refresh(merged)
            return merged

        return await self._execute_with_circuit_breaker(_update)
