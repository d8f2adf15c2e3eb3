"""
Pydantic schemas for CSV bulk uploads: one model per row kind plus the
result envelope returned to the caller.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from spv_ledger.models.allocation import TOKEN_TYPE_VALUES
from spv_ledger.models.investor import (
    INVESTOR_TYPE_MAX_LENGTH,
    WALLET_ADDRESS_RE,
    KYCStatus,
    normalize_investor_type,
)

_EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v.strip() if isinstance(v, str) else v


class InvestorImportRow(BaseModel):
    """One data row of an investor upload."""

    name: str
    email: str
    company: Optional[str] = None
    type: Optional[str] = Field(default=None, max_length=INVESTOR_TYPE_MAX_LENGTH)
    wallet_address: Optional[str] = None
    kyc_status: Optional[KYCStatus] = None
    notes: Optional[str] = None

    @field_validator("company", "type", "wallet_address", "kyc_status", "notes", mode="before")
    @classmethod
    def _optional_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("type")
    @classmethod
    def _investor_type(cls, v: Optional[str]) -> Optional[str]:
        return normalize_investor_type(v)

    @field_validator("name", mode="before")
    @classmethod
    def _name_required(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("Missing required field 'name'")
        return str(v).strip()

    @field_validator("email", mode="before")
    @classmethod
    def _email_shape(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("Missing required field 'email'")
        value = str(v).strip()
        if not _EMAIL_SHAPE.match(value):
            raise ValueError(f"Invalid email format '{value}'")
        return value.lower()

    @field_validator("wallet_address")
    @classmethod
    def _wallet_shape(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not WALLET_ADDRESS_RE.match(v):
            raise ValueError(f"Invalid wallet address format '{v}'")
        return v


class AllocationImportRow(BaseModel):
    """One data row of a token allocation upload."""

    subscription_id: str
    token_type: str
    token_amount: Decimal
    notes: Optional[str] = None

    @field_validator("notes", mode="before")
    @classmethod
    def _optional_blank(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("subscription_id", mode="before")
    @classmethod
    def _subscription_required(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            raise ValueError("Missing required field 'subscription_id'")
        return str(v).strip()

    @field_validator("token_type", mode="before")
    @classmethod
    def _known_token_type(cls, v: Any) -> str:
        value = str(v or "").strip()
        if value not in TOKEN_TYPE_VALUES:
            raise ValueError(f"Unknown token type '{value}'")
        return value

    @field_validator("token_amount", mode="before")
    @classmethod
    def _positive_amount(cls, v: Any) -> Decimal:
        raw = str(v if v is not None else "").strip().replace(",", "")
        try:
            amount = Decimal(raw)
        except InvalidOperation:
            raise ValueError(f"Invalid token amount '{raw}'")
        if not amount.is_finite() or amount <= 0:
            raise ValueError(f"Token amount must be positive, got '{raw}'")
        return amount


class RowError(BaseModel):
    """A rejected CSV data row (1-based, header excluded)."""

    row: int
    field: Optional[str] = None
    value: Optional[str] = None
    message: str


class BulkImportResult(BaseModel):
    """Outcome of a bulk upload: counts plus every rejected row."""

    total_rows: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[RowError] = Field(default_factory=list)
