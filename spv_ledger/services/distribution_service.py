"""
Distribution service: send minted tokens to investors' wallets.

The batch is all-or-nothing.  Every targeted investor must have a wallet
address and every allocation must already be minted; otherwise nothing is
sent and nothing is written.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from spv_ledger.core.exceptions import BusinessRuleViolation, DistributionBlocked, NotFoundException
from spv_ledger.models.allocation import AllocationStatus, TokenAllocation
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.services.chain import DistributionGateway
from spv_ledger.services.lifecycle import apply_batch, validate_batch

logger = logging.getLogger(__name__)


@dataclass
class DistributionOutcome:
    allocations: List[TokenAllocation]
    tx_hash: str


def _has_wallet(allocation: TokenAllocation) -> bool:
    return allocation.investor is not None and allocation.investor.has_wallet


class DistributionService:
    def __init__(self, allocation_repo: AllocationRepository, gateway: DistributionGateway):
        self._repo = allocation_repo
        self._gateway = gateway

    async def load(self, ids: List[UUID]) -> List[TokenAllocation]:
        """Load every allocation in ``ids``; 404 listing the ones that do not exist."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            raise BusinessRuleViolation("No allocations selected")
        allocations = await self._repo.get_many(ids)
        missing = set(ids) - {a.id for a in allocations}
        if missing:
            raise NotFoundException("Allocation", missing)
        by_id = {a.id: a for a in allocations}
        return [by_id[i] for i in ids]

    async def distribute(self, ids: List[UUID]) -> DistributionOutcome:
        allocations = await self.load(ids)
        return await self.distribute_loaded(allocations)

    async def distribute_loaded(self, allocations: List[TokenAllocation]) -> DistributionOutcome:
        """
        Checks run in order: wallet gate, then lifecycle (every row minted).
        The gateway is only called once both pass.
        """
        blocked = [a.id for a in allocations if not _has_wallet(a)]
        if blocked:
            logger.warning(
                "Distribution blocked: %d of %d allocation(s) lack a wallet address",
                len(blocked), len(allocations),
            )
            raise DistributionBlocked(blocked)
        validate_batch(allocations, AllocationStatus.DISTRIBUTED)

        transfers = [
            (a.investor.wallet_address, a.token_type, a.token_amount)  # type: ignore[union-attr]
            for a in allocations
        ]
        tx_hash = await self._gateway.distribute(transfers)

        now = datetime.now(timezone.utc)
        apply_batch(allocations, AllocationStatus.DISTRIBUTED, now=now, tx_hash=tx_hash)
        await self._repo.commit()

        logger.info(
            "Distributed %d allocation(s)",
            len(allocations),
            extra={"allocation_count": len(allocations)},
        )
        return DistributionOutcome(allocations=allocations, tx_hash=tx_hash)
