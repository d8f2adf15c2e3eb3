"""
Token allocation repository: data-access layer for ``token_allocations``.

Every read used by the lifecycle services eagerly loads the subscription
(summaries and mint eligibility read its flags) and the investor
(distribution reads the wallet address), so no lazy load is attempted on
the async session.
"""

from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from spv_ledger.models.allocation import AllocationStatus, TokenAllocation
from spv_ledger.repositories.base import BaseRepository


class AllocationRepository(BaseRepository[TokenAllocation]):
    """Concrete repository for :class:`TokenAllocation` entities."""

    def _with_relations(self):
        return select(self.model).options(
            selectinload(self.model.subscription),
            selectinload(self.model.investor),
        )

    async def get_with_relations(self, id: UUID) -> Optional[TokenAllocation]:
        rows = await self._scalars(self._with_relations().where(self.model.id == id))
        return rows[0] if rows else None

    async def get_many(self, ids: Iterable[UUID]) -> List[TokenAllocation]:
        ids = list(ids)
        if not ids:
            return []
        return await self._scalars(self._with_relations().where(self.model.id.in_(ids)))

    async def list_by_project(
        self,
        project_id: UUID,
        token_type: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[TokenAllocation]:
        """
        Allocations of one project in ledger order (``created_at``, then ``id``).

        ``limit=None`` returns every row; summaries and exports need the
        whole set.
        """
        stmt = self._with_relations().where(self.model.project_id == project_id)
        if token_type is not None:
            stmt = stmt.where(self.model.token_type == token_type)
        stmt = stmt.order_by(self.model.created_at, self.model.id).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._scalars(stmt)

    async def mint_candidates(self, project_id: UUID, token_type: str) -> List[TokenAllocation]:
        """
        Confirmed, unminted allocations of one token type.

        Subscription flags are checked by the selection function, which
        receives the loaded relations.
        """
        stmt = (
            self._with_relations()
            .where(
                self.model.project_id == project_id,
                self.model.token_type == token_type,
                self.model.status == AllocationStatus.CONFIRMED,
                self.model.minted.is_(False),
            )
            .order_by(self.model.allocation_date, self.model.created_at, self.model.id)
        )
        return await self._scalars(stmt)
