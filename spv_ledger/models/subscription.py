"""
Subscription domain model.

An investor's fiat commitment to a project. ``confirmed`` and ``allocated``
only ever move from false to true.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from spv_ledger.models.allocation import TokenAllocation
    from spv_ledger.models.investor import Investor
    from spv_ledger.models.project import Project


def new_subscription_ref() -> str:
    return f"SUB-{uuid.uuid4().hex[:12].upper()}"


class Subscription(SQLModel, table=True):
    """
    SQLModel table definition for subscriptions.

    ``subscription_ref`` is the human-facing identifier that bulk allocation
    uploads use in their ``subscription_id`` column.
    """

    __tablename__ = "subscriptions"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("fiat_amount >= 0", name="ck_subscriptions_amount_non_negative"),
        CheckConstraint("length(currency) = 3", name="ck_subscriptions_currency_iso"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    subscription_ref: str = Field(
        default_factory=new_subscription_ref, unique=True, index=True, max_length=64
    )
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    project_id: uuid.UUID = Field(foreign_key="projects.id", index=True, ondelete="RESTRICT")
    currency: str = Field(max_length=3)
    fiat_amount: Decimal = Field(max_digits=20, decimal_places=2)
    subscription_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    confirmed: bool = Field(default=False, index=True)
    allocated: bool = Field(default=False)
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

    investor: Optional["Investor"] = Relationship(back_populates="subscriptions")
    project: Optional["Project"] = Relationship(back_populates="subscriptions")
    allocations: List["TokenAllocation"] = Relationship(back_populates="subscription")

    def __repr__(self) -> str:
        return (
            f"<Subscription id={self.id} ref={self.subscription_ref} "
            f"{self.currency} {self.fiat_amount} confirmed={self.confirmed}>"
        )
