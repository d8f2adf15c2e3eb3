"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked dependencies so that
no real database or network I/O is needed.
"""

import os

# Must be set before anything imports spv_ledger.core.config.
os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from spv_ledger.models.allocation import AllocationStatus, TokenAllocation  # noqa: E402
from spv_ledger.models.investor import Investor, KYCStatus  # noqa: E402
from spv_ledger.models.project import Project  # noqa: E402
from spv_ledger.models.subscription import Subscription  # noqa: E402
from spv_ledger.services.summary import AllocationSnapshot  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

PROJECT_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
INVESTOR_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
SUBSCRIPTION_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
ALLOCATION_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
INVESTOR_ID_2 = uuid.UUID("55555555-5555-5555-5555-555555555555")

WALLET = "0x52908400098527886E0F7030069857D2E4169EE7"
BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_project(*, id: uuid.UUID = PROJECT_ID, name: str = "Test SPV") -> Project:
    return Project(id=id, name=name, token_symbol="TSPV", created_at=BASE_TIME, updated_at=BASE_TIME)


def make_investor(
    *,
    id: uuid.UUID = INVESTOR_ID,
    name: str = "Test Investor",
    email: str = "test@example.com",
    investor_type: str = "institution",
    wallet_address: Optional[str] = WALLET,
    kyc_status: KYCStatus = KYCStatus.APPROVED,
) -> Investor:
    """Create an Investor domain object with sensible test defaults."""
    return Investor(
        id=id,
        name=name,
        email=email,
        investor_type=investor_type,
        wallet_address=wallet_address,
        kyc_status=kyc_status,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def make_subscription(
    *,
    id: uuid.UUID = SUBSCRIPTION_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    project_id: uuid.UUID = PROJECT_ID,
    subscription_ref: str = "SUB-TEST-0001",
    fiat_amount: Decimal = Decimal("250000.00"),
    currency: str = "USD",
    confirmed: bool = True,
    allocated: bool = False,
) -> Subscription:
    return Subscription(
        id=id,
        subscription_ref=subscription_ref,
        investor_id=investor_id,
        project_id=project_id,
        currency=currency,
        fiat_amount=fiat_amount,
        subscription_date=BASE_TIME,
        confirmed=confirmed,
        allocated=allocated,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def make_allocation(
    *,
    id: Optional[uuid.UUID] = None,
    token_type: str = "ERC-20",
    token_amount: Decimal = Decimal("100"),
    status: AllocationStatus = AllocationStatus.CONFIRMED,
    allocation_date: Optional[datetime] = BASE_TIME,
    subscription: Optional[Subscription] = None,
    investor: Optional[Investor] = None,
) -> TokenAllocation:
    """
    Create a TokenAllocation whose flags agree with ``status``.

    ``subscription`` and ``investor`` default to confirmed/allocated and
    wallet-holding objects respectively, and are attached as loaded relations.
    """
    subscription = subscription or make_subscription(allocated=True)
    investor = investor or make_investor(id=subscription.investor_id)
    minted = status in (AllocationStatus.MINTED, AllocationStatus.DISTRIBUTED)
    allocation = TokenAllocation(
        id=id or uuid.uuid4(),
        subscription_id=subscription.id,
        investor_id=investor.id,
        project_id=subscription.project_id,
        token_type=token_type,
        token_amount=token_amount,
        status=status,
        allocation_date=None if status == AllocationStatus.PENDING else allocation_date,
        minted=minted,
        minting_date=BASE_TIME if minted else None,
        distributed=status == AllocationStatus.DISTRIBUTED,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    allocation.subscription = subscription
    allocation.investor = investor
    return allocation


def make_snapshot(
    *,
    token_amount: str = "100",
    token_type: str = "ERC-20",
    status: AllocationStatus = AllocationStatus.CONFIRMED,
    days: int = 0,
    minted: bool = False,
    distributed: bool = False,
    subscription_confirmed: bool = True,
    subscription_allocated: bool = True,
    id: Optional[uuid.UUID] = None,
) -> AllocationSnapshot:
    """Snapshot allocated ``days`` after ``BASE_TIME``."""
    when = BASE_TIME + timedelta(days=days)
    return AllocationSnapshot(
        id=id or uuid.uuid4(),
        token_type=token_type,
        token_amount=Decimal(token_amount),
        status=status,
        allocation_date=None if status == AllocationStatus.PENDING else when,
        created_at=when,
        minted=minted,
        distributed=distributed,
        subscription_confirmed=subscription_confirmed,
        subscription_allocated=subscription_allocated,
    )


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


def _mock_repo() -> AsyncMock:
    """Mocked repository: async queries, synchronous staging helpers."""
    repo = AsyncMock()
    repo.add = MagicMock(side_effect=lambda entity: entity)
    repo.add_all = MagicMock(side_effect=lambda entities: entities)
    return repo


@pytest.fixture()
def mock_repo_factory():
    return _mock_repo


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture(autouse=True)
def _reset_circuit_breaker():
    """Keep breaker state from leaking between tests."""
    from spv_ledger.core.resilience import db_circuit_breaker

    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()
