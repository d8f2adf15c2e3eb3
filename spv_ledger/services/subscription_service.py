"""
Subscription service: intake of investors' fiat commitments to a project.

A subscription must be confirmed before allocations can be assigned to it;
``confirmed`` and ``allocated`` only ever move from false to true.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import BusinessRuleViolation, ConflictException, NotFoundException
from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.repositories.subscription_repo import SubscriptionRepository
from spv_ledger.schemas.subscription import SubscriptionCreate, SubscriptionStats

logger = logging.getLogger(__name__)


def _percentage(part: int, whole: int) -> float:
    return round(part * 100.0 / whole, 2) if whole else 0.0


class SubscriptionService:
    """
    Requires the investor and project repositories because creating a
    subscription validates that both referenced entities exist.
    """

    def __init__(
        self,
        subscription_repo: SubscriptionRepository,
        investor_repo: InvestorRepository,
        project_repo: ProjectRepository,
    ):
        self._repo = subscription_repo
        self._investor_repo = investor_repo
        self._project_repo = project_repo

    async def _require_project(self, project_id: UUID) -> None:
        if not await self._project_repo.get(project_id):
            raise NotFoundException("Project", project_id)

    # ── Queries ──

    async def get_by_project(
        self, project_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Subscription]:
        """
        The project is validated first so the caller gets a clear 404
        instead of an empty list when it does not exist.
        """
        await self._require_project(project_id)
        return await self._repo.get_by_project(project_id, skip=skip, limit=limit)

    async def get_stats(self, project_id: UUID) -> SubscriptionStats:
        await self._require_project(project_id)
        raw = await self._repo.stats_for_project(project_id)
        total = raw["total_count"]
        return SubscriptionStats(
            total_count=total,
            confirmed_count=raw["confirmed_count"],
            allocated_count=raw["allocated_count"],
            total_amount=float(Decimal(raw["total_amount"] or 0)),
            confirmed_percentage=_percentage(raw["confirmed_count"], total),
            allocated_percentage=_percentage(raw["allocated_count"], total),
        )

    # ── Commands ──

    async def create_subscription(self, sub_in: SubscriptionCreate) -> Subscription:
        """
        Record a subscription.

        Raises :class:`NotFoundException` when the investor or project does
        not exist and :class:`ConflictException` on a duplicate reference.
        """
        await self._require_project(sub_in.project_id)
        if not await self._investor_repo.get(sub_in.investor_id):
            raise NotFoundException("Investor", sub_in.investor_id)

        data = sub_in.model_dump(exclude_none=True)
        if data.get("subscription_ref"):
            if await self._repo.get_by_ref(data["subscription_ref"]):
                raise ConflictException(
                    f"A subscription with reference '{data['subscription_ref']}' already exists"
                )
        else:
            data.pop("subscription_ref", None)

        subscription = Subscription(**data)
        try:
            created = await self._repo.create(subscription)
        except IntegrityError as exc:
            await self._repo.rollback()
            logger.warning("IntegrityError creating subscription: %s", exc.orig)
            raise ConflictException(
                f"A subscription with reference '{subscription.subscription_ref}' already exists"
            )

        logger.info(
            "Created subscription %s (%s %s) for investor %s in project %s",
            created.subscription_ref, created.currency, created.fiat_amount,
            created.investor_id, created.project_id,
        )
        return created

    async def confirm_subscriptions(self, ids: List[UUID]) -> List[Subscription]:
        """Mark every subscription in ``ids`` confirmed, in one commit."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            raise BusinessRuleViolation("No subscriptions selected")
        subscriptions = await self._repo.get_many(ids)
        missing = set(ids) - {s.id for s in subscriptions}
        if missing:
            raise NotFoundException("Subscription", missing)

        now = datetime.now(timezone.utc)
        for subscription in subscriptions:
            subscription.confirmed = True
            subscription.updated_at = now
        await self._repo.commit(*subscriptions)

        logger.info("Confirmed %d subscription(s)", len(subscriptions))
        return subscriptions
