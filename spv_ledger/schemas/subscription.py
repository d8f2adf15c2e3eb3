"""
Pydantic schemas for Subscription API request / response serialisation.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from spv_ledger.models.investor import KYCStatus


class SubscriptionCreate(BaseModel):
    """Schema for ``POST /subscriptions``."""

    investor_id: UUID
    project_id: UUID
    currency: str = Field(..., min_length=3, max_length=3, examples=["USD"])
    fiat_amount: Decimal = Field(..., ge=0, examples=[250_000])
    subscription_ref: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Human-readable reference; generated as SUB-... when omitted",
    )
    subscription_date: Optional[datetime] = None
    confirmed: bool = False
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("currency must be a 3-letter ISO code")
        return v.upper()


class SubscriptionConfirmRequest(BaseModel):
    """Schema for ``POST /subscriptions/confirm``."""

    ids: List[UUID] = Field(..., min_length=1)


class SubscriptionResponse(BaseModel):
    id: UUID
    subscription_ref: str
    investor_id: UUID
    project_id: UUID
    currency: str
    fiat_amount: Decimal
    subscription_date: datetime
    confirmed: bool
    allocated: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("fiat_amount")
    def serialize_amount(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class SubscriptionInvestor(BaseModel):
    name: str
    email: str
    wallet_address: Optional[str] = None
    investor_type: str
    kyc_status: KYCStatus

    model_config = ConfigDict(from_attributes=True)


class SubscriptionWithInvestor(SubscriptionResponse):
    investor: SubscriptionInvestor


class SubscriptionStats(BaseModel):
    total_count: int
    confirmed_count: int
    allocated_count: int
    total_amount: float
    confirmed_percentage: float
    allocated_percentage: float
