"""
Project domain model.

An SPV issuance project. Subscriptions and token allocations are scoped to a
project.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from spv_ledger.models.subscription import Subscription


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ProjectType(str, Enum):
    EQUITY = "equity"
    TOKEN = "token"
    HYBRID = "hybrid"


class Project(SQLModel, table=True):
    """SQLModel table definition for projects."""

    __tablename__ = "projects"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_projects_name_not_empty"),
        CheckConstraint(
            "target_raise IS NULL OR target_raise > 0",
            name="ck_projects_target_raise_positive",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    description: Optional[str] = Field(default=None)
    project_type: ProjectType = Field(default=ProjectType.TOKEN)
    status: ProjectStatus = Field(default=ProjectStatus.ACTIVE)
    token_symbol: Optional[str] = Field(default=None, max_length=16)
    target_raise: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    subscriptions: List["Subscription"] = Relationship(back_populates="project")

    def __repr__(self) -> str:
        return f"<Project id={self.id} name='{self.name}' status={self.status.value}>"
