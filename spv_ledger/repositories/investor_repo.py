"""
Investor repository: data-access layer for the ``investors`` table.

Extends generic CRUD with the case-insensitive email look-ups used for
duplicate detection and for matching bulk-upload rows to existing investors.
"""

from typing import Dict, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.future import select

from spv_ledger.models.investor import Investor
from spv_ledger.repositories.base import BaseRepository


class InvestorRepository(BaseRepository[Investor]):
    """Concrete repository for :class:`Investor` entities."""

    async def get_by_email(self, email: str) -> Optional[Investor]:
        """
        Look up an investor by email address, ignoring case.

        Used to enforce uniqueness *before* hitting the DB constraint,
        yielding a friendlier error message.
        """
        stmt = select(self.model).where(func.lower(self.model.email) == email.lower())
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    async def get_by_emails(self, emails: Iterable[str]) -> Dict[str, Investor]:
        """Map lower-cased email -> investor for every address that exists."""
        wanted = sorted({e.lower() for e in emails})
        if not wanted:
            return {}
        stmt = select(self.model).where(func.lower(self.model.email).in_(wanted))
        return {inv.email.lower(): inv for inv in await self._scalars(stmt)}
