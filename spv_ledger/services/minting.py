"""
Mint selection: which eligible allocations to mark as minted for a requested amount.

Pure and deterministic: the same candidates and amount always produce the
same selection.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List

from spv_ledger.models.allocation import AllocationStatus
from spv_ledger.services.summary import AllocationSnapshot

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class MintSelection:
    requested_amount: Decimal
    selected: List[AllocationSnapshot] = field(default_factory=list)

    @property
    def selected_ids(self) -> List[uuid.UUID]:
        return [s.id for s in self.selected]

    @property
    def total_amount(self) -> Decimal:
        """May exceed ``requested_amount`` when the last row was taken whole."""
        return sum((s.token_amount for s in self.selected), Decimal("0"))


def is_mint_eligible(snapshot: AllocationSnapshot) -> bool:
    """Subscription confirmed and allocated, allocation confirmed and not yet minted."""
    return (
        snapshot.subscription_confirmed
        and snapshot.subscription_allocated
        and not snapshot.minted
        and snapshot.status == AllocationStatus.CONFIRMED
    )


def _as_aware(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    # SQLite hands back naive datetimes; treat them as UTC so ordering stays total.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def mint_order_key(snapshot: AllocationSnapshot) -> tuple:
    """Earliest ``allocation_date`` first; ``created_at`` then ``id`` break ties."""
    return (_as_aware(snapshot.allocation_date), _as_aware(snapshot.created_at), str(snapshot.id))


def select_for_minting(
    candidates: Iterable[AllocationSnapshot], requested_amount: Decimal
) -> MintSelection:
    """
    Greedy FIFO walk over eligible allocations with a budget of ``requested_amount``.

    - an allocation that fits the remaining budget is taken whole;
    - one that does not fit is still taken whole if the remaining budget is
      more than half of it, and the walk stops either way.

    Allocations are never split, so the selected total can overshoot the
    request (A=100, B=50, request 130 -> 150).
    """
    requested = Decimal(requested_amount)
    selection = MintSelection(requested_amount=requested)
    if requested <= 0:
        return selection

    eligible = sorted((c for c in candidates if is_mint_eligible(c)), key=mint_order_key)

    remaining = requested
    for snapshot in eligible:
        if remaining <= 0:
            break
        amount = snapshot.token_amount
        if amount <= remaining:
            selection.selected.append(snapshot)
            remaining -= amount
            continue
        # Stand-in for fractional splitting of the last allocation.
        if remaining > amount / 2:
            selection.selected.append(snapshot)
        break

    return selection
