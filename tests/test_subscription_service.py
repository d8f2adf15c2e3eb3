"""
Unit tests for SubscriptionService.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import ConflictException, NotFoundException
from spv_ledger.schemas.subscription import SubscriptionCreate
from spv_ledger.services.subscription_service import SubscriptionService

from .conftest import INVESTOR_ID, PROJECT_ID, make_investor, make_project, make_subscription


@pytest.fixture()
def repos(mock_repo_factory):
    subscription_repo, investor_repo, project_repo = (mock_repo_factory() for _ in range(3))
    project_repo.get.return_value = make_project()
    investor_repo.get.return_value = make_investor()
    subscription_repo.get_by_ref.return_value = None
    subscription_repo.create.side_effect = lambda s: s
    return subscription_repo, investor_repo, project_repo


@pytest.fixture()
def service(repos):
    subscription_repo, investor_repo, project_repo = repos
    return SubscriptionService(subscription_repo, investor_repo, project_repo)


def _create(**overrides) -> SubscriptionCreate:
    data = dict(investor_id=INVESTOR_ID, project_id=PROJECT_ID, currency="usd", fiat_amount=Decimal("1000"))
    data.update(overrides)
    return SubscriptionCreate(**data)


class TestCreateSubscription:
    @pytest.mark.asyncio
    async def test_generates_reference(self, service):
        created = await service.create_subscription(_create())
        assert created.subscription_ref.startswith("SUB-")
        assert created.currency == "USD"
        assert created.confirmed is False
        assert created.allocated is False

    @pytest.mark.asyncio
    async def test_keeps_given_reference(self, service):
        created = await service.create_subscription(_create(subscription_ref="SUB-HL-1"))
        assert created.subscription_ref == "SUB-HL-1"

    @pytest.mark.asyncio
    async def test_unknown_project_raises_404(self, service, repos):
        repos[2].get.return_value = None
        with pytest.raises(NotFoundException, match="Project"):
            await service.create_subscription(_create())

    @pytest.mark.asyncio
    async def test_unknown_investor_raises_404(self, service, repos):
        repos[1].get.return_value = None
        with pytest.raises(NotFoundException, match="Investor"):
            await service.create_subscription(_create())

    @pytest.mark.asyncio
    async def test_duplicate_reference_raises_409(self, service, repos):
        repos[0].get_by_ref.return_value = make_subscription()
        with pytest.raises(ConflictException):
            await service.create_subscription(_create(subscription_ref="SUB-TEST-0001"))

    @pytest.mark.asyncio
    async def test_integrity_error_rolls_back(self, service, repos):
        repos[0].create.side_effect = IntegrityError("INSERT", {}, Exception("unique"))
        with pytest.raises(ConflictException):
            await service.create_subscription(_create())
        repos[0].rollback.assert_awaited_once()


class TestConfirmSubscriptions:
    @pytest.mark.asyncio
    async def test_confirms_all_in_one_commit(self, service, repos):
        subs = [make_subscription(id=uuid4(), confirmed=False) for _ in range(2)]
        repos[0].get_many.return_value = subs

        result = await service.confirm_subscriptions([s.id for s in subs])

        assert all(s.confirmed for s in result)
        repos[0].commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_ids_raise_404_without_commit(self, service, repos):
        sub = make_subscription(id=uuid4(), confirmed=False)
        repos[0].get_many.return_value = [sub]
        missing = uuid4()

        with pytest.raises(NotFoundException, match=str(missing)):
            await service.confirm_subscriptions([sub.id, missing])
        assert sub.confirmed is False
        repos[0].commit.assert_not_awaited()


class TestStats:
    @pytest.mark.asyncio
    async def test_percentages(self, service, repos):
        repos[0].stats_for_project.return_value = {
            "total_count": 4,
            "confirmed_count": 3,
            "allocated_count": 1,
            "total_amount": Decimal("400000.00"),
        }
        stats = await service.get_stats(PROJECT_ID)
        assert stats.confirmed_percentage == 75.0
        assert stats.allocated_percentage == 25.0
        assert stats.total_amount == 400000.0

    @pytest.mark.asyncio
    async def test_empty_project(self, service, repos):
        repos[0].stats_for_project.return_value = {
            "total_count": 0, "confirmed_count": 0, "allocated_count": 0, "total_amount": 0,
        }
        stats = await service.get_stats(PROJECT_ID)
        assert stats.confirmed_percentage == 0.0
