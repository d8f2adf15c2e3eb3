"""
Minting and distribution endpoints.

- GET   /projects/{project_id}/token-summaries  - Per token type totals and status
- POST  /projects/{project_id}/mint             - Mint requested amounts per token type
- POST  /allocations/distribute                 - Distribute minted allocations
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from spv_ledger.db.session import get_db
from spv_ledger.models.allocation import TokenAllocation
from spv_ledger.models.project import Project
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.schemas.allocation import (
    AllocationIds,
    AllocationResponse,
    DistributionResponse,
    MintRequest,
    MintResponse,
    TokenTypeSummaryResponse,
)
from spv_ledger.schemas.common import ErrorResponse, ValidationErrorResponse
from spv_ledger.services.chain import PlaceholderChainGateway, get_chain_gateway
from spv_ledger.services.distribution_service import DistributionService
from spv_ledger.services.minting_service import MintingService

router = APIRouter()


# ── Dependency injection ──


def _get_minting_service(
    db: AsyncSession = Depends(get_db),
    gateway: PlaceholderChainGateway = Depends(get_chain_gateway),
) -> MintingService:
    return MintingService(
        allocation_repo=AllocationRepository(TokenAllocation, db),
        project_repo=ProjectRepository(Project, db),
        gateway=gateway,
    )


def _get_distribution_service(
    db: AsyncSession = Depends(get_db),
    gateway: PlaceholderChainGateway = Depends(get_chain_gateway),
) -> DistributionService:
    return DistributionService(AllocationRepository(TokenAllocation, db), gateway)


# ── Endpoints ──


@router.get(
    "/projects/{project_id}/token-summaries",
    response_model=List[TokenTypeSummaryResponse],
    summary="Token type summaries for a project",
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def token_summaries(
    project_id: UUID,
    service: MintingService = Depends(_get_minting_service),
) -> List[TokenTypeSummaryResponse]:
    summaries = await service.get_summaries(project_id)
    return [TokenTypeSummaryResponse.from_summary(s) for s in summaries]


@router.post(
    "/projects/{project_id}/mint",
    response_model=MintResponse,
    summary="Mint tokens",
    description=(
        "For each token type, selects eligible confirmed allocations in "
        "allocation-date order until the requested amount is covered.  "
        "Allocations are never split.  Token types that fail are listed in "
        "``failed_token_types``; the others are still minted."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Project not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def mint_tokens(
    project_id: UUID,
    body: MintRequest,
    service: MintingService = Depends(_get_minting_service),
) -> MintResponse:
    return await service.mint(project_id, body.requests)


@router.post(
    "/allocations/distribute",
    response_model=DistributionResponse,
    summary="Distribute minted tokens",
    description=(
        "All-or-nothing: if any targeted investor has no wallet address, or any "
        "allocation is not minted, the batch is rejected and nothing is written."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Some allocations not found"},
        422: {"model": ErrorResponse, "description": "Distribution blocked or allocation not minted"},
    },
)
async def distribute_tokens(
    body: AllocationIds,
    service: DistributionService = Depends(_get_distribution_service),
) -> DistributionResponse:
    outcome = await service.distribute(body.ids)
    return DistributionResponse(
        distributed_count=len(outcome.allocations),
        tx_hash=outcome.tx_hash,
        allocations=[AllocationResponse.model_validate(a) for a in outcome.allocations],
    )
