"""
Subscription repository: data-access layer for the ``subscriptions`` table.
"""

from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.base import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Concrete repository for :class:`Subscription` entities."""

    async def get_by_project(
        self, project_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Subscription]:
        """
        Subscriptions of one project with their investor eagerly loaded,
        most recent ``subscription_date`` first.
        """
        stmt = (
            select(self.model)
            .where(self.model.project_id == project_id)
            .options(selectinload(self.model.investor))
            .order_by(self.model.subscription_date.desc(), self.model.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)

    async def get_by_ref(self, subscription_ref: str) -> Optional[Subscription]:
        stmt = select(self.model).where(self.model.subscription_ref == subscription_ref)
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    async def get_by_refs(
        self, project_id: UUID, refs: Iterable[str]
    ) -> Dict[str, Subscription]:
        """Map ``subscription_ref`` -> subscription, restricted to one project."""
        wanted = sorted(set(refs))
        if not wanted:
            return {}
        stmt = select(self.model).where(
            self.model.project_id == project_id,
            self.model.subscription_ref.in_(wanted),
        )
        return {s.subscription_ref: s for s in await self._scalars(stmt)}

    async def stats_for_project(self, project_id: UUID) -> dict:
        """Counts and fiat total computed in one aggregate query."""

        async def _stats() -> dict:
            stmt = select(
                func.count(self.model.id),
                func.count(self.model.id).filter(self.model.confirmed.is_(True)),
                func.count(self.model.id).filter(self.model.allocated.is_(True)),
                func.coalesce(func.sum(self.model.fiat_amount), 0),
            ).where(self.model.project_id == project_id)
            total, confirmed, allocated, amount = (await self.db.execute(stmt)).one()
            return {
                "total_count": total,
                "confirmed_count": confirmed,
                "allocated_count": allocated,
                "total_amount": amount,
            }

        return await self._execute_with_circuit_breaker(_stats)
