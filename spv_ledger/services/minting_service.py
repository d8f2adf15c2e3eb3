"""
Minting service: token type summaries and the mint operation.

Each requested token type is minted as its own logical operation with its
own commit.  A failure on one token type is rolled back, logged and reported
in ``failed_token_types``; the remaining token types still run.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Tuple
from uuid import UUID

from spv_ledger.core.exceptions import NotFoundException
from spv_ledger.models.allocation import AllocationStatus
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.schemas.allocation import (
    MintedBatch,
    MintRequestItem,
    MintResponse,
    TokenTypeSummaryResponse,
)
from spv_ledger.services.chain import MintingGateway
from spv_ledger.services.lifecycle import apply_batch
from spv_ledger.services.minting import select_for_minting
from spv_ledger.services.summary import AllocationSnapshot, TokenTypeSummary, summarize_allocations

logger = logging.getLogger(__name__)


class MintingService:
    def __init__(
        self,
        allocation_repo: AllocationRepository,
        project_repo: ProjectRepository,
        gateway: MintingGateway,
    ):
        self._repo = allocation_repo
        self._project_repo = project_repo
        self._gateway = gateway

    async def _require_project(self, project_id: UUID) -> None:
        if not await self._project_repo.get(project_id):
            raise NotFoundException("Project", project_id)

    async def get_summaries(self, project_id: UUID) -> List[TokenTypeSummary]:
        """Per token type aggregates, recomputed from the project's rows."""
        await self._require_project(project_id)
        allocations = await self._repo.list_by_project(project_id)
        return summarize_allocations(allocations)

    async def _mint_token_type(
        self, project_id: UUID, item: MintRequestItem
    ) -> Tuple[MintedBatch, Decimal]:
        candidates = await self._repo.mint_candidates(project_id, item.token_type)
        selection = select_for_minting(
            (AllocationSnapshot.from_allocation(a) for a in candidates), item.amount
        )
        batch = MintedBatch(
            token_type=item.token_type,
            requested_amount=float(item.amount),
            minted_amount=float(selection.total_amount),
            allocation_ids=selection.selected_ids,
        )
        if not selection.selected:
            logger.info(
                "Nothing eligible to mint for %s in project %s",
                item.token_type, project_id,
                extra={"project_id": str(project_id), "token_type": item.token_type},
            )
            return batch, Decimal("0")

        by_id = {a.id: a for a in candidates}
        rows = [by_id[i] for i in selection.selected_ids]
        tx_hash = await self._gateway.mint(
            project_id, item.token_type, selection.selected_ids, selection.total_amount
        )
        apply_batch(rows, AllocationStatus.MINTED, now=datetime.now(timezone.utc), tx_hash=tx_hash)
        await self._repo.commit()

        batch.tx_hash = tx_hash
        logger.info(
            "Minted %s %s across %d allocation(s) (requested %s)",
            selection.total_amount, item.token_type, len(rows), item.amount,
            extra={
                "project_id": str(project_id),
                "token_type": item.token_type,
                "allocation_count": len(rows),
            },
        )
        return batch, selection.total_amount

    async def mint(self, project_id: UUID, requests: List[MintRequestItem]) -> MintResponse:
        await self._require_project(project_id)

        response = MintResponse()
        total = Decimal("0")
        for item in requests:
            if item.amount <= 0:
                logger.info("Skipping %s: requested amount %s is not positive", item.token_type, item.amount)
                continue
            try:
                batch, minted = await self._mint_token_type(project_id, item)
            except Exception:
                await self._repo.rollback()
                logger.exception(
                    "Minting %s failed and was rolled back",
                    item.token_type,
                    extra={"project_id": str(project_id), "token_type": item.token_type},
                )
                response.failed_token_types.append(item.token_type)
                continue
            response.results.append(batch)
            total += minted

        response.total_minted = float(total)
        response.summaries = [
            TokenTypeSummaryResponse.from_summary(s)
            for s in summarize_allocations(await self._repo.list_by_project(project_id))
        ]
        return response
