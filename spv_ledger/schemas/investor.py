"""
Pydantic schemas for Investor API request / response serialisation.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from spv_ledger.models.investor import (
    DEFAULT_INVESTOR_TYPE,
    INVESTOR_TYPE_MAX_LENGTH,
    WALLET_ADDRESS_RE,
    KYCStatus,
    normalize_investor_type,
)


def _check_wallet(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if not v:
        return None
    if not WALLET_ADDRESS_RE.match(v):
        raise ValueError("wallet_address must be 0x followed by 40 hex characters")
    return v


class InvestorBase(BaseModel):
    """Fields common to investor creation payloads."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Full name of the investor or entity",
        examples=["Amelia Hart"],
    )
    email: EmailStr = Field(
        ...,
        description="Contact email address (unique across investors, case-insensitive)",
        examples=["amelia@hartcapital.com"],
    )
    investor_type: str = Field(
        default=DEFAULT_INVESTOR_TYPE,
        max_length=INVESTOR_TYPE_MAX_LENGTH,
        description="Free-text classification, stored lower-case with underscores",
        examples=["institutional_crypto"],
    )
    company: Optional[str] = Field(default=None, max_length=255)
    wallet_address: Optional[str] = Field(
        default=None,
        description="Destination wallet for distributions",
        examples=["0x52908400098527886E0F7030069857D2E4169EE7"],
    )
    kyc_status: KYCStatus = Field(default=KYCStatus.NOT_STARTED)
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    @field_validator("investor_type")
    @classmethod
    def validate_investor_type(cls, v: str) -> str:
        return normalize_investor_type(v) or DEFAULT_INVESTOR_TYPE

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet(cls, v: Optional[str]) -> Optional[str]:
        return _check_wallet(v)


class InvestorCreate(InvestorBase):
    """Schema for ``POST /investors``."""


class InvestorUpdate(BaseModel):
    """
    Schema for ``PATCH /investors/{id}``.

    Only fields present in the payload are applied.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    investor_type: Optional[str] = Field(default=None, max_length=INVESTOR_TYPE_MAX_LENGTH)
    wallet_address: Optional[str] = None
    kyc_status: Optional[KYCStatus] = None
    notes: Optional[str] = None

    @field_validator("investor_type")
    @classmethod
    def validate_investor_type(cls, v: Optional[str]) -> Optional[str]:
        return normalize_investor_type(v)

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet(cls, v: Optional[str]) -> Optional[str]:
        return _check_wallet(v)


class InvestorResponse(InvestorBase):
    """Schema returned by all investor endpoints."""

    # Stored emails may predate EmailStr validation (bulk imports use a looser check).
    email: str
    id: UUID
    kyc_updated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
