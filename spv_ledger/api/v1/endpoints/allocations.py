"""
Token allocation API endpoints.

- GET     /projects/{project_id}/allocations          - Allocation ledger of a project
- POST    /subscriptions/{subscription_id}/allocations - Assign tokens to a subscription
- POST    /allocations/confirm                         - Confirm allocations
- POST    /allocations/status                          - Bulk status tool
- PATCH   /allocations/{allocation_id}                 - Edit a pending/confirmed allocation
- DELETE  /allocations/{allocation_id}                 - Delete a pending/confirmed allocation
- POST    /projects/{project_id}/allocations/import    - Bulk insert from a CSV upload
- GET     /projects/{project_id}/allocations/export    - CSV export
"""

from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from spv_ledger.api.v1.endpoints.uploads import read_csv_upload
from spv_ledger.core.config import settings
from spv_ledger.db.session import get_db
from spv_ledger.models.allocation import TokenAllocation
from spv_ledger.models.investor import Investor
from spv_ledger.models.project import Project
from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.repositories.subscription_repo import SubscriptionRepository
from spv_ledger.schemas.allocation import (
    AllocationAssign,
    AllocationDetail,
    AllocationIds,
    AllocationResponse,
    AllocationStatusUpdate,
    AllocationUpdate,
)
from spv_ledger.schemas.common import ErrorResponse, ValidationErrorResponse
from spv_ledger.schemas.imports import BulkImportResult
from spv_ledger.services.allocation_service import AllocationService
from spv_ledger.services.chain import PlaceholderChainGateway, get_chain_gateway
from spv_ledger.services.csv_io import ExportOptions
from spv_ledger.services.distribution_service import DistributionService

router = APIRouter()


# ── Dependency injection ──


def _get_allocation_service(
    db: AsyncSession = Depends(get_db),
    gateway: PlaceholderChainGateway = Depends(get_chain_gateway),
) -> AllocationService:
    """Build an AllocationService whose repositories share one DB session."""
    allocation_repo = AllocationRepository(TokenAllocation, db)
    return AllocationService(
        allocation_repo=allocation_repo,
        subscription_repo=SubscriptionRepository(Subscription, db),
        investor_repo=InvestorRepository(Investor, db),
        project_repo=ProjectRepository(Project, db),
        distribution=DistributionService(allocation_repo, gateway),
    )


_LIFECYCLE_ERRORS = {
    404: {"model": ErrorResponse, "description": "Some allocations not found"},
    422: {"model": ErrorResponse, "description": "Transition not allowed, or distribution blocked"},
}


# ── Endpoints ──


@router.get(
    "/projects/{project_id}/allocations",
    response_model=List[AllocationDetail],
    summary="List a project's allocations",
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def list_allocations(
    project_id: UUID,
    token_type: Optional[str] = Query(None, description="Only this token type"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Max records to return"
    ),
    service: AllocationService = Depends(_get_allocation_service),
) -> List[AllocationDetail]:
    allocations = await service.get_by_project(project_id, token_type=token_type, skip=skip, limit=limit)
    # Built here so the loaded investor and subscription relations are kept.
    return [AllocationDetail.model_validate(a) for a in allocations]


@router.post(
    "/subscriptions/{subscription_id}/allocations",
    response_model=List[AllocationResponse],
    status_code=201,
    summary="Assign token allocations to a subscription",
    description=(
        "Creates one allocation per token type / amount pair.  When the "
        "subscription has a positive fiat amount the allocations start confirmed."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Subscription, investor or project not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error or unconfirmed subscription"},
    },
)
async def assign_allocations(
    subscription_id: UUID,
    body: AllocationAssign,
    service: AllocationService = Depends(_get_allocation_service),
) -> List[AllocationResponse]:
    return await service.assign(subscription_id, body)


@router.post(
    "/allocations/confirm",
    response_model=List[AllocationResponse],
    summary="Confirm allocations",
    responses=_LIFECYCLE_ERRORS,
)
async def confirm_allocations(
    body: AllocationIds,
    service: AllocationService = Depends(_get_allocation_service),
) -> List[AllocationResponse]:
    return await service.confirm(body.ids)


@router.post(
    "/allocations/status",
    response_model=List[AllocationResponse],
    summary="Set the status of several allocations",
    description=(
        "``confirmed``, ``unconfirmed``, ``distributed`` or ``not_distributed``.  "
        "The whole batch is validated before anything is written."
    ),
    responses=_LIFECYCLE_ERRORS,
)
async def set_allocation_status(
    body: AllocationStatusUpdate,
    service: AllocationService = Depends(_get_allocation_service),
) -> List[AllocationResponse]:
    return await service.set_status(body.ids, body.status)


@router.patch(
    "/allocations/{allocation_id}",
    response_model=AllocationResponse,
    summary="Edit an allocation",
    responses={
        404: {"model": ErrorResponse, "description": "Allocation not found"},
        422: {"model": ErrorResponse, "description": "Allocation already minted or distributed"},
    },
)
async def update_allocation(
    allocation_id: UUID,
    body: AllocationUpdate,
    service: AllocationService = Depends(_get_allocation_service),
) -> AllocationResponse:
    return await service.update(allocation_id, body)


@router.delete(
    "/allocations/{allocation_id}",
    status_code=204,
    summary="Delete an allocation",
    responses={
        404: {"model": ErrorResponse, "description": "Allocation not found"},
        422: {"model": ErrorResponse, "description": "Allocation already minted or distributed"},
    },
)
async def delete_allocation(
    allocation_id: UUID,
    service: AllocationService = Depends(_get_allocation_service),
) -> Response:
    await service.delete(allocation_id)
    return Response(status_code=204)


@router.post(
    "/projects/{project_id}/allocations/import",
    response_model=BulkImportResult,
    summary="Bulk import allocations from CSV",
    description=(
        "Columns: ``subscription_id`` (the subscription reference), ``token_type``, "
        "``token_amount`` (required) and ``notes``.  Invalid rows are reported and skipped."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Project not found"},
        422: {"model": ErrorResponse, "description": "Unreadable file or missing headers"},
    },
)
async def import_allocations(
    project_id: UUID,
    file: UploadFile = File(...),
    service: AllocationService = Depends(_get_allocation_service),
) -> BulkImportResult:
    return await service.import_csv(project_id, await read_csv_upload(file))


@router.get(
    "/projects/{project_id}/allocations/export",
    summary="Export allocations as CSV",
    response_class=Response,
    responses={
        200: {"content": {"text/csv": {}}, "description": "CSV file"},
        404: {"model": ErrorResponse, "description": "Project not found"},
    },
)
async def export_allocations(
    project_id: UUID,
    include_investor_details: bool = Query(False),
    include_subscription_details: bool = Query(False),
    include_status: bool = Query(False),
    file_format: Literal["csv", "xlsx"] = Query("csv"),
    ids: Optional[List[UUID]] = Query(None, description="Only these allocations"),
    service: AllocationService = Depends(_get_allocation_service),
) -> Response:
    options = ExportOptions(
        include_investor_details=include_investor_details,
        include_subscription_details=include_subscription_details,
        include_status=include_status,
        file_format=file_format,
    )
    export = await service.export(project_id, options, ids=ids)
    return Response(
        content=export.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )
