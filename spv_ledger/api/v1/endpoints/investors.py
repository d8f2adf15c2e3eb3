"""
Investor API endpoints.

- GET    /investors          - List investors
- POST   /investors          - Create an investor
- POST   /investors/import   - Bulk upsert investors from a CSV upload
- GET    /investors/{id}     - Retrieve an investor
- PATCH  /investors/{id}     - Update wallet address, KYC status and details
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from spv_ledger.api.v1.endpoints.uploads import read_csv_upload
from spv_ledger.core.config import settings
from spv_ledger.db.session import get_db
from spv_ledger.models.investor import Investor
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.schemas.common import ErrorResponse, ValidationErrorResponse
from spv_ledger.schemas.imports import BulkImportResult
from spv_ledger.schemas.investor import InvestorCreate, InvestorResponse, InvestorUpdate
from spv_ledger.services.investor_service import InvestorService

router = APIRouter()


# ── Dependency injection ──


def _get_investor_service(db: AsyncSession = Depends(get_db)) -> InvestorService:
    """Build an InvestorService wired to the current request's DB session."""
    return InvestorService(InvestorRepository(Investor, db))


# ── Endpoints ──


@router.get(
    "",
    response_model=List[InvestorResponse],
    summary="List all investors",
    description=(
        "Returns a paginated list of investors.  Use ``skip`` and ``limit`` "
        "query parameters to page through large result sets."
    ),
)
async def list_investors(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Max records to return"
    ),
    service: InvestorService = Depends(_get_investor_service),
) -> List[InvestorResponse]:
    return await service.get_all_investors(skip=skip, limit=limit)


@router.post(
    "",
    response_model=InvestorResponse,
    status_code=201,
    summary="Create a new investor",
    description=(
        "Registers a new investor.  The email must be unique (case-insensitive); "
        "a 409 Conflict is returned if it is already in use."
    ),
    responses={
        409: {"model": ErrorResponse, "description": "Duplicate email address"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_investor(
    investor: InvestorCreate,
    service: InvestorService = Depends(_get_investor_service),
) -> InvestorResponse:
    return await service.create_investor(investor)


@router.post(
    "/import",
    response_model=BulkImportResult,
    summary="Bulk import investors from CSV",
    description=(
        "Columns: ``name``, ``email`` (required), ``company``, ``type``, "
        "``wallet_address``, ``kyc_status``, ``notes``.  Existing investors are "
        "matched by email and updated; invalid rows are reported and skipped."
    ),
    responses={422: {"model": ErrorResponse, "description": "Unreadable file or missing headers"}},
)
async def import_investors(
    file: UploadFile = File(...),
    service: InvestorService = Depends(_get_investor_service),
) -> BulkImportResult:
    return await service.import_csv(await read_csv_upload(file))


@router.get(
    "/{investor_id}",
    response_model=InvestorResponse,
    summary="Get a specific investor",
    responses={404: {"model": ErrorResponse, "description": "Investor not found"}},
)
async def get_investor(
    investor_id: UUID,
    service: InvestorService = Depends(_get_investor_service),
) -> InvestorResponse:
    return await service.get_investor(investor_id)


@router.patch(
    "/{investor_id}",
    response_model=InvestorResponse,
    summary="Update an investor",
    description="Partial update.  Changing ``kyc_status`` stamps ``kyc_updated_at``.",
    responses={
        404: {"model": ErrorResponse, "description": "Investor not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def update_investor(
    investor_id: UUID,
    update: InvestorUpdate,
    service: InvestorService = Depends(_get_investor_service),
) -> InvestorResponse:
    return await service.update_investor(investor_id, update)
