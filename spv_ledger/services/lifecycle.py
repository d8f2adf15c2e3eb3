"""
Allocation lifecycle: the transition table and the single function that moves
an allocation between states.

Every write path (confirmation, the bulk status tool, minting, distribution)
goes through :func:`apply_transition`, so the persisted flags can never drift
from ``status``.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from spv_ledger.core.exceptions import InvalidTransition
from spv_ledger.models.allocation import AllocationStatus, TokenAllocation

_ALLOWED_TRANSITIONS: dict[AllocationStatus, set[AllocationStatus]] = {
    AllocationStatus.PENDING: {AllocationStatus.PENDING, AllocationStatus.CONFIRMED},
    AllocationStatus.CONFIRMED: {
        AllocationStatus.PENDING,
        AllocationStatus.CONFIRMED,
        AllocationStatus.MINTED,
    },
    AllocationStatus.MINTED: {AllocationStatus.DISTRIBUTED},
    AllocationStatus.DISTRIBUTED: set(),  # terminal
}

# States in which amount/token type may still be edited or the row deleted.
EDITABLE_STATES = frozenset({AllocationStatus.PENDING, AllocationStatus.CONFIRMED})


def can_transition(current: AllocationStatus, requested: AllocationStatus) -> bool:
    return requested in _ALLOWED_TRANSITIONS.get(current, set())


def validate_transition(allocation: TokenAllocation, requested: AllocationStatus) -> None:
    """Raise :class:`InvalidTransition` unless ``allocation`` may move to ``requested``."""
    if not can_transition(allocation.status, requested):
        raise InvalidTransition(allocation.id, allocation.status.value, requested.value)


def validate_batch(
    allocations: Iterable[TokenAllocation], requested: AllocationStatus
) -> None:
    """
    Check a whole batch before anything is written.

    Raises one :class:`InvalidTransition` for the first offending row, with
    every offending id listed in ``details``.
    """
    offending = [a for a in allocations if not can_transition(a.status, requested)]
    if offending:
        first = offending[0]
        exc = InvalidTransition(first.id, first.status.value, requested.value)
        exc.details = [
            {"id": str(a.id), "status": a.status.value, "requested": requested.value}
            for a in offending
        ]
        raise exc


def apply_transition(
    allocation: TokenAllocation,
    requested: AllocationStatus,
    *,
    now: datetime,
    tx_hash: Optional[str] = None,
) -> TokenAllocation:
    """
    Move ``allocation`` to ``requested`` and update the columns that mirror it.

    - pending:     ``allocation_date`` cleared
    - confirmed:   ``allocation_date`` stamped
    - minted:      ``minted``/``minting_date``/``minting_tx_hash`` set
    - distributed: ``distributed``/``distribution_date``/``distribution_tx_hash`` set
    """
    validate_transition(allocation, requested)

    if requested == AllocationStatus.PENDING:
        allocation.allocation_date = None
    elif requested == AllocationStatus.CONFIRMED:
        allocation.allocation_date = now
    elif requested == AllocationStatus.MINTED:
        allocation.minted = True
        allocation.minting_date = now
        allocation.minting_tx_hash = tx_hash
    elif requested == AllocationStatus.DISTRIBUTED:
        allocation.distributed = True
        allocation.distribution_date = now
        allocation.distribution_tx_hash = tx_hash

    allocation.status = requested
    allocation.updated_at = now
    return allocation


def apply_batch(
    allocations: List[TokenAllocation],
    requested: AllocationStatus,
    *,
    now: datetime,
    tx_hash: Optional[str] = None,
) -> List[TokenAllocation]:
    """Validate the full batch first, then apply the transition to every row."""
    validate_batch(allocations, requested)
    for allocation in allocations:
        apply_transition(allocation, requested, now=now, tx_hash=tx_hash)
    return allocations
