"""
Repository and service tests against a real (in-memory SQLite) database.

These cover what the mocked-repository tests cannot: the SQL ordering of
mint candidates, the table CHECK constraints and the rollback of a failed
assignment commit.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import BusinessRuleViolation
from spv_ledger.db.session import AsyncSessionLocal, create_tables, engine
from spv_ledger.models.allocation import AllocationStatus, TokenAllocation
from spv_ledger.models.investor import Investor, KYCStatus
from spv_ledger.models.project import Project
from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.repositories.subscription_repo import SubscriptionRepository
from spv_ledger.schemas.allocation import AllocationAssign, MintRequestItem
from spv_ledger.services.allocation_service import AllocationService
from spv_ledger.services.chain import PlaceholderChainGateway
from spv_ledger.services.distribution_service import DistributionService
from spv_ledger.services.minting_service import MintingService

from .conftest import BASE_TIME, WALLET


@pytest.fixture()
async def session():
    """A session on a fresh in-memory database, dropped after the test."""
    await create_tables()
    db = AsyncSessionLocal()
    try:
        yield db
    finally:
        await db.close()
        # StaticPool holds the only connection; disposing it discards the database.
        await engine.dispose()


@pytest.fixture()
async def subscription(session):
    project = Project(name="Harbour SPV", token_symbol="HSPV")
    investor = Investor(
        name="Amelia Hart",
        email="amelia@hart.com",
        wallet_address=WALLET,
        kyc_status=KYCStatus.APPROVED,
    )
    session.add_all([project, investor])
    await session.flush()
    sub = Subscription(
        investor_id=investor.id,
        project_id=project.id,
        currency="USD",
        fiat_amount=Decimal("250000.00"),
        confirmed=True,
    )
    session.add(sub)
    await session.commit()
    return sub


def _allocation(sub, amount, *, day=None, status=AllocationStatus.CONFIRMED, **kwargs):
    values = dict(
        subscription_id=sub.id,
        investor_id=sub.investor_id,
        project_id=sub.project_id,
        token_type="ERC-20",
        token_amount=Decimal(amount),
        status=status,
        allocation_date=BASE_TIME + timedelta(days=day) if day is not None else None,
    )
    values.update(kwargs)
    return TokenAllocation(**values)


async def _allocation_count(session) -> int:
    result = await session.execute(select(func.count()).select_from(TokenAllocation))
    return result.scalar_one()


# ────────────────────────────────────────────────────────────────────────────
# Mint candidates
# ────────────────────────────────────────────────────────────────────────────


class TestMintCandidates:
    @pytest.mark.asyncio
    async def test_ordered_by_allocation_date(self, session, subscription):
        # Inserted out of date order, with created_at running the other way.
        second = _allocation(subscription, "50", day=2, created_at=BASE_TIME)
        first = _allocation(subscription, "100", day=1, created_at=BASE_TIME + timedelta(hours=1))
        third = _allocation(subscription, "80", day=3, created_at=BASE_TIME - timedelta(hours=1))
        pending = _allocation(subscription, "10", status=AllocationStatus.PENDING)
        other_type = _allocation(subscription, "5", day=0, token_type="ERC-721")
        session.add_all([second, first, third, pending, other_type])
        await session.commit()

        repo = AllocationRepository(TokenAllocation, session)
        candidates = await repo.mint_candidates(subscription.project_id, "ERC-20")

        assert [a.id for a in candidates] == [first.id, second.id, third.id]
        assert all(a.subscription is not None and a.investor is not None for a in candidates)

    @pytest.mark.asyncio
    async def test_minted_rows_excluded(self, session, subscription):
        minted = _allocation(
            subscription, "100", day=1, status=AllocationStatus.MINTED, minted=True,
            minting_tx_hash="0x" + "cd" * 32,
        )
        open_row = _allocation(subscription, "40", day=2)
        session.add_all([minted, open_row])
        await session.commit()

        repo = AllocationRepository(TokenAllocation, session)
        candidates = await repo.mint_candidates(subscription.project_id, "ERC-20")

        assert [a.id for a in candidates] == [open_row.id]

    @pytest.mark.asyncio
    async def test_mint_takes_earliest_confirmed_first(self, session, subscription):
        subscription.allocated = True
        later = _allocation(subscription, "50", day=2)
        earliest = _allocation(subscription, "100", day=1)
        session.add_all([later, earliest])
        await session.commit()

        service = MintingService(
            AllocationRepository(TokenAllocation, session),
            ProjectRepository(Project, session),
            PlaceholderChainGateway(),
        )
        result = await service.mint(
            subscription.project_id,
            [MintRequestItem(token_type="ERC-20", amount=Decimal("120"))],
        )

        (batch,) = result.results
        assert batch.allocation_ids == [earliest.id]
        assert result.total_minted == 100.0

        await session.refresh(earliest)
        await session.refresh(later)
        assert earliest.minted is True
        assert earliest.status == AllocationStatus.MINTED
        assert earliest.minting_tx_hash == batch.tx_hash
        assert later.minted is False


# ────────────────────────────────────────────────────────────────────────────
# Table constraints
# ────────────────────────────────────────────────────────────────────────────


class TestAllocationConstraints:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            pytest.param({"minted": True, "status": AllocationStatus.MINTED}, id="minted-without-allocation-date"),
            pytest.param({"day": 1, "distributed": True}, id="distributed-without-minted"),
            pytest.param({"day": 1, "amount": "0"}, id="zero-amount"),
        ],
    )
    async def test_inconsistent_row_rejected(self, session, subscription, overrides):
        overrides = dict(overrides)
        amount = overrides.pop("amount", "10")
        session.add(_allocation(subscription, amount, **overrides))

        with pytest.raises(IntegrityError):
            await session.commit()
        await session.rollback()

        assert await _allocation_count(session) == 0


# ────────────────────────────────────────────────────────────────────────────
# Assignment commit
# ────────────────────────────────────────────────────────────────────────────


def _allocation_service(session):
    allocation_repo = AllocationRepository(TokenAllocation, session)
    return AllocationService(
        allocation_repo,
        SubscriptionRepository(Subscription, session),
        InvestorRepository(Investor, session),
        ProjectRepository(Project, session),
        DistributionService(allocation_repo, PlaceholderChainGateway()),
    )


_ASSIGNMENT = AllocationAssign(
    allocations=[
        {"token_type": "ERC-20", "token_amount": "1000"},
        {"token_type": "ERC-1400", "token_amount": "2.5"},
    ]
)


class TestAssignCommit:
    @pytest.mark.asyncio
    async def test_assignment_persisted(self, session, subscription):
        created = await _allocation_service(session).assign(subscription.id, _ASSIGNMENT)

        assert await _allocation_count(session) == 2
        await session.refresh(subscription)
        assert subscription.allocated is True
        assert all(a.status == AllocationStatus.CONFIRMED for a in created)

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_nothing_behind(self, session, subscription, monkeypatch):
        async def _commit_fails_after_flush(self):
            await self.flush()
            raise IntegrityError("COMMIT", {}, Exception("constraint failed"))

        monkeypatch.setattr(type(session), "commit", _commit_fails_after_flush)

        with pytest.raises(BusinessRuleViolation, match="nothing was saved"):
            await _allocation_service(session).assign(subscription.id, _ASSIGNMENT)

        assert await _allocation_count(session) == 0
        await session.refresh(subscription)
        assert subscription.allocated is False
