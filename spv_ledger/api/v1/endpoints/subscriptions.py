"""
Subscription API endpoints.

- POST  /subscriptions                         - Record a subscription
- POST  /subscriptions/confirm                 - Confirm subscriptions in bulk
- GET   /projects/{project_id}/subscriptions   - List a project's subscriptions
- GET   /projects/{project_id}/subscriptions/stats - Counts and totals
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from spv_ledger.core.config import settings
from spv_ledger.db.session import get_db
from spv_ledger.models.investor import Investor
from spv_ledger.models.project import Project
from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.repositories.subscription_repo import SubscriptionRepository
from spv_ledger.schemas.common import ErrorResponse, ValidationErrorResponse
from spv_ledger.schemas.subscription import (
    SubscriptionConfirmRequest,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionStats,
    SubscriptionWithInvestor,
)
from spv_ledger.services.subscription_service import SubscriptionService

router = APIRouter()


# ── Dependency injection ──


def _get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    """
    Build a SubscriptionService with all three repositories sharing the same
    DB session (and therefore the same transaction).
    """
    return SubscriptionService(
        subscription_repo=SubscriptionRepository(Subscription, db),
        investor_repo=InvestorRepository(Investor, db),
        project_repo=ProjectRepository(Project, db),
    )


# ── Endpoints ──


@router.post(
    "/subscriptions",
    response_model=SubscriptionResponse,
    status_code=201,
    summary="Record a subscription",
    responses={
        404: {"model": ErrorResponse, "description": "Investor or project not found"},
        409: {"model": ErrorResponse, "description": "Duplicate subscription reference"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_subscription(
    subscription: SubscriptionCreate,
    service: SubscriptionService = Depends(_get_subscription_service),
) -> SubscriptionResponse:
    return await service.create_subscription(subscription)


@router.post(
    "/subscriptions/confirm",
    response_model=List[SubscriptionResponse],
    summary="Confirm subscriptions",
    responses={404: {"model": ErrorResponse, "description": "Some subscriptions not found"}},
)
async def confirm_subscriptions(
    body: SubscriptionConfirmRequest,
    service: SubscriptionService = Depends(_get_subscription_service),
) -> List[SubscriptionResponse]:
    return await service.confirm_subscriptions(body.ids)


@router.get(
    "/projects/{project_id}/subscriptions",
    response_model=List[SubscriptionWithInvestor],
    summary="List subscriptions for a project",
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def list_subscriptions(
    project_id: UUID,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Max records to return"
    ),
    service: SubscriptionService = Depends(_get_subscription_service),
) -> List[SubscriptionWithInvestor]:
    subscriptions = await service.get_by_project(project_id, skip=skip, limit=limit)
    return [SubscriptionWithInvestor.model_validate(s) for s in subscriptions]


@router.get(
    "/projects/{project_id}/subscriptions/stats",
    response_model=SubscriptionStats,
    summary="Subscription statistics for a project",
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def subscription_stats(
    project_id: UUID,
    service: SubscriptionService = Depends(_get_subscription_service),
) -> SubscriptionStats:
    return await service.get_stats(project_id)
