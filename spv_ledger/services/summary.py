"""
Token type summaries: pure aggregation over a project's allocations.

Summaries are recomputed in full from the rows on every read; nothing here
touches the database.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

from spv_ledger.models.allocation import AllocationStatus, TokenAllocation

UNASSIGNED_TOKEN_TYPE = "Unassigned"
ZERO = Decimal("0")


class SummaryStatus(str, Enum):
    PENDING = "pending"
    READY_TO_MINT = "ready_to_mint"
    PARTIALLY_MINTED = "partially_minted"
    MINTED = "minted"


@dataclass(frozen=True)
class AllocationSnapshot:
    """The fields of one allocation (and its subscription) that summaries and minting read."""

    id: uuid.UUID
    token_type: str
    token_amount: Decimal
    status: AllocationStatus
    allocation_date: Optional[datetime]
    created_at: Optional[datetime]
    minted: bool
    distributed: bool
    subscription_confirmed: bool
    subscription_allocated: bool

    @classmethod
    def from_allocation(cls, allocation: TokenAllocation) -> "AllocationSnapshot":
        subscription = allocation.subscription
        return cls(
            id=allocation.id,
            token_type=allocation.token_type or UNASSIGNED_TOKEN_TYPE,
            token_amount=Decimal(allocation.token_amount or 0),
            status=allocation.status,
            allocation_date=allocation.allocation_date,
            created_at=allocation.created_at,
            minted=allocation.minted,
            distributed=allocation.distributed,
            subscription_confirmed=bool(subscription and subscription.confirmed),
            subscription_allocated=bool(subscription and subscription.allocated),
        )

    @property
    def counts_as_confirmed(self) -> bool:
        return self.subscription_confirmed and self.subscription_allocated


@dataclass
class TokenTypeSummary:
    token_type: str
    total_amount: Decimal = ZERO
    confirmed_amount: Decimal = ZERO
    minted_amount: Decimal = ZERO
    distributed_amount: Decimal = ZERO
    allocation_count: int = 0
    confirmed_count: int = 0
    minted_count: int = 0
    distributed_count: int = 0
    allocations: List[AllocationSnapshot] = field(default_factory=list, repr=False)

    @property
    def raw_remaining_to_mint(self) -> Decimal:
        return self.confirmed_amount - self.minted_amount

    @property
    def remaining_to_mint(self) -> Decimal:
        """``confirmed_amount - minted_amount``, never reported below zero."""
        return max(self.raw_remaining_to_mint, ZERO)

    @property
    def status(self) -> SummaryStatus:
        return derive_status(self.confirmed_amount, self.minted_amount)

    @property
    def ready_to_mint(self) -> bool:
        return self.confirmed_amount > self.minted_amount

    @property
    def is_minted(self) -> bool:
        return self.minted_amount > 0


def derive_status(confirmed_amount: Decimal, minted_amount: Decimal) -> SummaryStatus:
    """
    Summary status, evaluated in this exact order:

    1. nothing confirmed                    -> pending
    2. something minted, some left to mint  -> partially_minted
    3. something minted, nothing left       -> minted
    4. something confirmed                  -> ready_to_mint
    """
    remaining = confirmed_amount - minted_amount
    if confirmed_amount == 0:
        return SummaryStatus.PENDING
    if minted_amount > 0 and remaining > 0:
        return SummaryStatus.PARTIALLY_MINTED
    if minted_amount > 0 and remaining <= 0:
        return SummaryStatus.MINTED
    if confirmed_amount > 0:
        return SummaryStatus.READY_TO_MINT
    return SummaryStatus.PENDING


def summarize(snapshots: Iterable[AllocationSnapshot]) -> List[TokenTypeSummary]:
    """Group snapshots by token type and aggregate each group, in first-seen order."""
    groups: "OrderedDict[str, TokenTypeSummary]" = OrderedDict()
    for snap in snapshots:
        summary = groups.get(snap.token_type)
        if summary is None:
            summary = groups[snap.token_type] = TokenTypeSummary(token_type=snap.token_type)

        summary.allocations.append(snap)
        summary.allocation_count += 1
        summary.total_amount += snap.token_amount
        if snap.counts_as_confirmed:
            summary.confirmed_amount += snap.token_amount
            summary.confirmed_count += 1
        if snap.minted:
            summary.minted_amount += snap.token_amount
            summary.minted_count += 1
        if snap.distributed:
            summary.distributed_amount += snap.token_amount
            summary.distributed_count += 1
    return list(groups.values())


def summarize_allocations(allocations: Iterable[TokenAllocation]) -> List[TokenTypeSummary]:
    return summarize(AllocationSnapshot.from_allocation(a) for a in allocations)
