"""
Project service: business logic for the SPVs that subscriptions and
allocations belong to.
"""

import logging
from typing import List
from uuid import UUID

from spv_ledger.core.exceptions import NotFoundException
from spv_ledger.models.project import Project
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.schemas.project import ProjectCreate

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, project_repo: ProjectRepository):
        self._repo = project_repo

    async def get_all_projects(self, skip: int = 0, limit: int = 100) -> List[Project]:
        return await self._repo.get_all(skip=skip, limit=limit)

    async def get_project(self, project_id: UUID) -> Project:
        """Raises :class:`NotFoundException` if the project does not exist."""
        project = await self._repo.get(project_id)
        if not project:
            raise NotFoundException("Project", project_id)
        return project

    async def create_project(self, project_in: ProjectCreate) -> Project:
        project = Project(**project_in.model_dump())
        created = await self._repo.create(project)
        logger.info("Created project %s (%s)", created.id, created.name)
        return created
