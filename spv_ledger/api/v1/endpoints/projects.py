"""
Project API endpoints.

- GET   /projects       - List projects
- POST  /projects       - Create a project
- GET   /projects/{id}  - Retrieve a project
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from spv_ledger.core.config import settings
from spv_ledger.db.session import get_db
from spv_ledger.models.project import Project
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.schemas.common import ErrorResponse, ValidationErrorResponse
from spv_ledger.schemas.project import ProjectCreate, ProjectResponse
from spv_ledger.services.project_service import ProjectService

router = APIRouter()


# ── Dependency injection ──
# A fresh service per request, wired to that request's DB session, so one
# request's transaction cannot bleed into another and tests can swap it out.


def _get_project_service(db: AsyncSession = Depends(get_db)) -> ProjectService:
    return ProjectService(ProjectRepository(Project, db))


# ── Endpoints ──


@router.get(
    "",
    response_model=List[ProjectResponse],
    summary="List projects",
)
async def list_projects(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(
        settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Max records to return"
    ),
    service: ProjectService = Depends(_get_project_service),
) -> List[ProjectResponse]:
    return await service.get_all_projects(skip=skip, limit=limit)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=201,
    summary="Create a project",
    responses={422: {"model": ValidationErrorResponse, "description": "Validation error"}},
)
async def create_project(
    project: ProjectCreate,
    service: ProjectService = Depends(_get_project_service),
) -> ProjectResponse:
    return await service.create_project(project)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get a specific project",
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def get_project(
    project_id: UUID,
    service: ProjectService = Depends(_get_project_service),
) -> ProjectResponse:
    return await service.get_project(project_id)
