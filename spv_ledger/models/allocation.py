"""
Token allocation domain model.

A quantity of one token type promised to one investor against one
subscription. ``status`` is the lifecycle state; ``allocation_date``,
``minted`` and ``distributed`` (with their timestamps and transaction hashes)
are kept in step with it by :mod:`spv_ledger.services.lifecycle`, and the
CHECK constraints below reject rows where they disagree.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from spv_ledger.models.investor import Investor
    from spv_ledger.models.subscription import Subscription


class TokenType(str, Enum):
    """Token standards an allocation can be issued in."""

    ERC20 = "ERC-20"
    ERC721 = "ERC-721"
    ERC1155 = "ERC-1155"
    ERC1400 = "ERC-1400"
    ERC3525 = "ERC-3525"
    ERC4626 = "ERC-4626"


TOKEN_TYPE_VALUES = frozenset(t.value for t in TokenType)


class AllocationStatus(str, Enum):
    """Lifecycle states: pending -> confirmed -> minted -> distributed."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    MINTED = "minted"
    DISTRIBUTED = "distributed"


class TokenAllocation(SQLModel, table=True):
    """SQLModel table definition for ``token_allocations``."""

    __tablename__ = "token_allocations"  # type: ignore[assignment]

    # Covers: WHERE project_id = ? AND token_type = ? ORDER BY allocation_date
    __table_args__ = (
        Index("ix_token_allocations_project_type_date", "project_id", "token_type", "allocation_date"),
        CheckConstraint("token_amount > 0", name="ck_token_allocations_amount_positive"),
        CheckConstraint(
            "minted = false OR allocation_date IS NOT NULL",
            name="ck_token_allocations_minted_requires_confirmation",
        ),
        CheckConstraint(
            "distributed = false OR minted = true",
            name="ck_token_allocations_distributed_requires_minted",
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    subscription_id: uuid.UUID = Field(
        foreign_key="subscriptions.id", index=True, ondelete="RESTRICT"
    )
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True, ondelete="RESTRICT")
    token_type: str = Field(max_length=32)
    token_amount: Decimal = Field(max_digits=30, decimal_places=8)
    status: AllocationStatus = Field(default=AllocationStatus.PENDING, index=True)

    allocation_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    minted: bool = Field(default=False)
    minting_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    minting_tx_hash: Optional[str] = Field(default=None, max_length=80)
    distributed: bool = Field(default=False)
    distribution_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    distribution_tx_hash: Optional[str] = Field(default=None, max_length=80)
    notes: Optional[str] = Field(default=None)

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

    subscription: Optional["Subscription"] = Relationship(back_populates="allocations")
    investor: Optional["Investor"] = Relationship()

    @property
    def allocation_confirmed(self) -> bool:
        return self.allocation_date is not None

    def __repr__(self) -> str:
        return (
            f"<TokenAllocation id={self.id} {self.token_type} {self.token_amount} "
            f"status={self.status.value}>"
        )
