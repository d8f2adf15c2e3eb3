"""
Investor domain model.

Investors carry the KYC status and wallet address that gate token
distribution. Their onboarding flow lives outside this service; here they are
created, imported in bulk, and updated.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from spv_ledger.models.subscription import Subscription

WALLET_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


# Investor classification is free text (hnwi, institutional_crypto, private_equity, ...).
DEFAULT_INVESTOR_TYPE = "hnwi"
INVESTOR_TYPE_MAX_LENGTH = 64


def normalize_investor_type(value: Optional[str]) -> Optional[str]:
    """Lower-case and snake_case a classification; blank means unset."""
    if value is None:
        return None
    return "_".join(value.strip().lower().split()) or None


class KYCStatus(str, Enum):
    NOT_STARTED = "not_started"
    PENDING = "pending"
    APPROVED = "approved"
    FAILED = "failed"
    EXPIRED = "expired"


class Investor(SQLModel, table=True):
    """
    SQLModel table definition for investors.

    ``email`` has a unique index; the service lower-cases emails before
    comparing so duplicates differing only in case are caught too.
    """

    __tablename__ = "investors"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_investors_name_not_empty"),
        CheckConstraint("length(email) > 0", name="ck_investors_email_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    email: str = Field(unique=True, index=True, max_length=320)
    investor_type: str = Field(default=DEFAULT_INVESTOR_TYPE, max_length=INVESTOR_TYPE_MAX_LENGTH)
    company: Optional[str] = Field(default=None, max_length=255)
    wallet_address: Optional[str] = Field(default=None, max_length=42)
    kyc_status: KYCStatus = Field(default=KYCStatus.NOT_STARTED, index=True)
    kyc_updated_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    notes: Optional[str] = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    subscriptions: List["Subscription"] = Relationship(back_populates="investor")

    @property
    def has_wallet(self) -> bool:
        return bool(self.wallet_address and self.wallet_address.strip())

    def __repr__(self) -> str:
        return f"<Investor id={self.id} email='{self.email}' kyc={self.kyc_status.value}>"
