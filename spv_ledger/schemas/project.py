"""
Pydantic schemas for Project request / response serialisation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from spv_ledger.models.project import ProjectStatus, ProjectType


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["Harbour Logistics SPV"])
    description: Optional[str] = None
    project_type: ProjectType = ProjectType.TOKEN
    status: ProjectStatus = ProjectStatus.ACTIVE
    token_symbol: Optional[str] = Field(default=None, max_length=16, examples=["HLSPV"])
    target_raise: Optional[Decimal] = Field(default=None, gt=0, examples=[5_000_000])

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class ProjectCreate(ProjectBase):
    """Schema for ``POST /projects``."""


class ProjectResponse(ProjectBase):
    id: UUID
    created_at: datetime
    updated_at: datetime

    @field_serializer("target_raise")
    def serialize_target_raise(self, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None

    model_config = ConfigDict(from_attributes=True)
