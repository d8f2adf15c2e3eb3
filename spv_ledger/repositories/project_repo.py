"""
Project repository: data-access layer for the ``projects`` table.
"""

from typing import List

from sqlalchemy.future import select

from spv_ledger.models.project import Project
from spv_ledger.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    """Concrete repository for :class:`Project` entities."""

    async def get_all(self, skip: int = 0, limit: int = 100) -> List[Project]:
        """Newest projects first; ``id`` breaks ties so pages stay stable."""
        stmt = (
            select(self.model)
            .order_by(self.model.created_at.desc(), self.model.id)
            .offset(skip)
            .limit(limit)
        )
        return await self._scalars(stmt)
