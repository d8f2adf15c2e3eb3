"""
Pydantic schemas for token allocation, minting and distribution endpoints.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from spv_ledger.models.allocation import TOKEN_TYPE_VALUES, AllocationStatus
from spv_ledger.services.summary import SummaryStatus, TokenTypeSummary


def _known_token_type(v: str) -> str:
    v = v.strip()
    if v not in TOKEN_TYPE_VALUES:
        raise ValueError(f"token_type must be one of: {', '.join(sorted(TOKEN_TYPE_VALUES))}")
    return v


# ── Requests ──


class TokenAmount(BaseModel):
    token_type: str = Field(..., examples=["ERC-20"])
    token_amount: Decimal = Field(..., gt=0, examples=[1000])

    @field_validator("token_type")
    @classmethod
    def validate_token_type(cls, v: str) -> str:
        return _known_token_type(v)


class AllocationAssign(BaseModel):
    """Schema for ``POST /subscriptions/{id}/allocations``."""

    allocations: List[TokenAmount] = Field(..., min_length=1)
    notes: Optional[str] = None


class AllocationIds(BaseModel):
    """Body for the bulk endpoints that act on a set of allocations."""

    ids: List[UUID] = Field(..., min_length=1)

    @field_validator("ids")
    @classmethod
    def dedupe(cls, v: List[UUID]) -> List[UUID]:
        return list(dict.fromkeys(v))


class StatusAction(str, Enum):
    CONFIRMED = "confirmed"
    UNCONFIRMED = "unconfirmed"
    DISTRIBUTED = "distributed"
    NOT_DISTRIBUTED = "not_distributed"


class AllocationStatusUpdate(AllocationIds):
    """Schema for ``POST /allocations/status``."""

    status: StatusAction


class AllocationUpdate(BaseModel):
    """Schema for ``PATCH /allocations/{id}``; only fields present are applied."""

    token_type: Optional[str] = None
    token_amount: Optional[Decimal] = Field(default=None, gt=0)
    notes: Optional[str] = None

    @field_validator("token_type")
    @classmethod
    def validate_token_type(cls, v: Optional[str]) -> Optional[str]:
        return _known_token_type(v) if v is not None else None


class MintRequestItem(BaseModel):
    token_type: str
    amount: Decimal = Field(..., description="Requested amount; non-positive entries are skipped")


class MintRequest(BaseModel):
    """Schema for ``POST /projects/{id}/mint``."""

    requests: List[MintRequestItem] = Field(..., min_length=1)


# ── Responses ──


class AllocationResponse(BaseModel):
    id: UUID
    subscription_id: UUID
    investor_id: UUID
    project_id: UUID
    token_type: str
    token_amount: Decimal
    status: AllocationStatus
    allocation_date: Optional[datetime] = None
    minted: bool
    minting_date: Optional[datetime] = None
    minting_tx_hash: Optional[str] = None
    distributed: bool
    distribution_date: Optional[datetime] = None
    distribution_tx_hash: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("token_amount")
    def serialize_amount(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class AllocationInvestor(BaseModel):
    id: UUID
    name: str
    email: str
    wallet_address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AllocationSubscription(BaseModel):
    id: UUID
    subscription_ref: str
    currency: str
    fiat_amount: Decimal
    confirmed: bool
    allocated: bool

    @field_serializer("fiat_amount")
    def serialize_amount(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class AllocationDetail(AllocationResponse):
    """Allocation with the investor and subscription fields the ledger view shows."""

    investor: Optional[AllocationInvestor] = None
    subscription: Optional[AllocationSubscription] = None


class TokenTypeSummaryResponse(BaseModel):
    token_type: str
    total_amount: float
    confirmed_amount: float
    minted_amount: float
    distributed_amount: float
    remaining_to_mint: float
    allocation_count: int
    confirmed_count: int
    minted_count: int
    distributed_count: int
    status: SummaryStatus
    ready_to_mint: bool
    is_minted: bool

    @classmethod
    def from_summary(cls, s: TokenTypeSummary) -> "TokenTypeSummaryResponse":
        return cls(
            token_type=s.token_type,
            total_amount=float(s.total_amount),
            confirmed_amount=float(s.confirmed_amount),
            minted_amount=float(s.minted_amount),
            distributed_amount=float(s.distributed_amount),
            remaining_to_mint=float(s.remaining_to_mint),
            allocation_count=s.allocation_count,
            confirmed_count=s.confirmed_count,
            minted_count=s.minted_count,
            distributed_count=s.distributed_count,
            status=s.status,
            ready_to_mint=s.ready_to_mint,
            is_minted=s.is_minted,
        )


class MintedBatch(BaseModel):
    token_type: str
    requested_amount: float
    minted_amount: float
    allocation_ids: List[UUID]
    tx_hash: Optional[str] = None


class MintResponse(BaseModel):
    results: List[MintedBatch] = Field(default_factory=list)
    total_minted: float = 0.0
    failed_token_types: List[str] = Field(default_factory=list)
    summaries: List[TokenTypeSummaryResponse] = Field(default_factory=list)


class DistributionResponse(BaseModel):
    distributed_count: int
    tx_hash: str
    allocations: List[AllocationResponse]
