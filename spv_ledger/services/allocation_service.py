"""
Allocation service: assignment, confirmation, the bulk status tool, single-row
edits and the CSV import / export of a project's token allocations.

Every multi-row operation validates the whole batch first, stages all changes
on the shared session and commits once; any failure rolls back everything.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import (
    BusinessRuleViolation,
    InvalidTransition,
    NotFoundException,
)
from spv_ledger.models.allocation import AllocationStatus, TokenAllocation
from spv_ledger.models.subscription import Subscription
from spv_ledger.repositories.allocation_repo import AllocationRepository
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.repositories.project_repo import ProjectRepository
from spv_ledger.repositories.subscription_repo import SubscriptionRepository
from spv_ledger.schemas.allocation import AllocationAssign, AllocationUpdate, StatusAction, TokenAmount
from spv_ledger.schemas.imports import BulkImportResult, RowError
from spv_ledger.services.csv_io import (
    ExportOptions,
    ExportRow,
    decode_upload,
    export_filename,
    parse_allocation_csv,
    render_allocations_csv,
)
from spv_ledger.services.distribution_service import DistributionService
from spv_ledger.services.lifecycle import EDITABLE_STATES, apply_batch, apply_transition

logger = logging.getLogger(__name__)


@dataclass
class ExportFile:
    filename: str
    content: str
    row_count: int


class AllocationService:
    """
    Requires the subscription, investor and project repositories because
    assignment validates every entity the new rows reference, and the
    distribution service because the status tool can distribute.
    """

    def __init__(
        self,
        allocation_repo: AllocationRepository,
        subscription_repo: SubscriptionRepository,
        investor_repo: InvestorRepository,
        project_repo: ProjectRepository,
        distribution: DistributionService,
    ):
        self._repo = allocation_repo
        self._subscription_repo = subscription_repo
        self._investor_repo = investor_repo
        self._project_repo = project_repo
        self._distribution = distribution

    async def _require_project(self, project_id: UUID) -> None:
        if not await self._project_repo.get(project_id):
            raise NotFoundException("Project", project_id)

    async def _get_editable(self, allocation_id: UUID) -> TokenAllocation:
        allocation = await self._repo.get_with_relations(allocation_id)
        if not allocation:
            raise NotFoundException("Allocation", allocation_id)
        if allocation.status not in EDITABLE_STATES:
            raise BusinessRuleViolation(
                f"Allocation '{allocation_id}' is {allocation.status.value} and can no longer be changed"
            )
        return allocation

    async def _commit_or_translate(self, operation: str) -> None:
        try:
            await self._repo.commit()
        except IntegrityError as exc:
            await self._repo.rollback()
            logger.warning("IntegrityError during %s: %s", operation, exc.orig)
            raise BusinessRuleViolation(f"{operation} violates a data constraint; nothing was saved")

    @staticmethod
    def _new_allocation(
        subscription: Subscription,
        item: TokenAmount,
        notes: Optional[str],
        now: datetime,
    ) -> TokenAllocation:
        """A fresh row, auto-confirmed when the subscription carries a fiat amount."""
        allocation = TokenAllocation(
            subscription_id=subscription.id,
            investor_id=subscription.investor_id,
            project_id=subscription.project_id,
            token_type=item.token_type,
            token_amount=item.token_amount,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        if subscription.fiat_amount > 0:
            apply_transition(allocation, AllocationStatus.CONFIRMED, now=now)
        return allocation

    # ── Queries ──

    async def get_by_project(
        self,
        project_id: UUID,
        token_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[TokenAllocation]:
        await self._require_project(project_id)
        return await self._repo.list_by_project(project_id, token_type=token_type, skip=skip, limit=limit)

    # ── Commands ──

    async def assign(self, subscription_id: UUID, assign_in: AllocationAssign) -> List[TokenAllocation]:
        """
        Create one allocation per ``(token_type, token_amount)`` pair and flag
        the subscription as allocated, all in one commit.
        """
        subscription = await self._subscription_repo.get(subscription_id)
        if not subscription:
            raise NotFoundException("Subscription", subscription_id)
        if not await self._investor_repo.get(subscription.investor_id):
            raise NotFoundException("Investor", subscription.investor_id)
        await self._require_project(subscription.project_id)
        if not subscription.confirmed:
            raise BusinessRuleViolation(
                f"Subscription '{subscription.subscription_ref}' must be confirmed before allocating tokens"
            )

        now = datetime.now(timezone.utc)
        allocations = [
            self._new_allocation(subscription, item, assign_in.notes, now)
            for item in assign_in.allocations
        ]
        self._repo.add_all(allocations)
        subscription.allocated = True
        subscription.updated_at = now
        await self._commit_or_translate("Allocation assignment")

        logger.info(
            "Assigned %d allocation(s) to subscription %s",
            len(allocations), subscription.subscription_ref,
            extra={"project_id": str(subscription.project_id), "allocation_count": len(allocations)},
        )
        return allocations

    async def confirm(self, ids: List[UUID]) -> List[TokenAllocation]:
        """Confirm every allocation in ``ids`` (re-stamping ``allocation_date``)."""
        allocations = await self._distribution.load(ids)
        apply_batch(allocations, AllocationStatus.CONFIRMED, now=datetime.now(timezone.utc))
        await self._commit_or_translate("Allocation confirmation")
        logger.info("Confirmed %d allocation(s)", len(allocations), extra={"allocation_count": len(allocations)})
        return allocations

    async def set_status(self, ids: List[UUID], action: StatusAction) -> List[TokenAllocation]:
        """
        Bulk status tool.

        ``not_distributed`` cannot undo a distribution: it is a no-op on rows
        that are not distributed and rejected on rows that are.
        """
        if action == StatusAction.CONFIRMED:
            return await self.confirm(ids)
        if action == StatusAction.DISTRIBUTED:
            return (await self._distribution.distribute(ids)).allocations

        allocations = await self._distribution.load(ids)
        if action == StatusAction.NOT_DISTRIBUTED:
            distributed = [a for a in allocations if a.status == AllocationStatus.DISTRIBUTED]
            if distributed:
                exc = InvalidTransition(distributed[0].id, AllocationStatus.DISTRIBUTED.value, action.value)
                exc.details = [str(a.id) for a in distributed]
                raise exc
            return allocations

        apply_batch(allocations, AllocationStatus.PENDING, now=datetime.now(timezone.utc))
        await self._commit_or_translate("Allocation unconfirmation")
        logger.info("Unconfirmed %d allocation(s)", len(allocations), extra={"allocation_count": len(allocations)})
        return allocations

    async def update(self, allocation_id: UUID, update_in: AllocationUpdate) -> TokenAllocation:
        allocation = await self._get_editable(allocation_id)
        for key, value in update_in.model_dump(exclude_unset=True).items():
            if key in ("token_type", "token_amount") and value is None:
                continue
            setattr(allocation, key, value)
        allocation.updated_at = datetime.now(timezone.utc)
        await self._commit_or_translate("Allocation update")
        logger.info("Updated allocation %s", allocation_id)
        return allocation

    async def delete(self, allocation_id: UUID) -> None:
        """
        Delete a pending or confirmed allocation.

        The subscription keeps ``allocated = true`` even when its last
        allocation goes.
        """
        allocation = await self._get_editable(allocation_id)
        await self._repo.stage_delete(allocation)
        await self._commit_or_translate("Allocation deletion")
        logger.info("Deleted allocation %s", allocation_id)

    async def import_csv(self, project_id: UUID, payload: bytes) -> BulkImportResult:
        """
        Insert allocations from an uploaded CSV.

        ``subscription_id`` holds the subscription reference, resolved within
        ``project_id``.  Unknown or unconfirmed subscriptions are row errors.
        Valid rows are inserted (auto-confirmed like manual assignment) and
        their subscriptions flagged allocated, in one commit.
        """
        await self._require_project(project_id)
        parsed = parse_allocation_csv(decode_upload(payload))
        errors = list(parsed.errors)
        subscriptions = await self._subscription_repo.get_by_refs(
            project_id, (p.data.subscription_id for p in parsed.rows)
        )

        now = datetime.now(timezone.utc)
        inserted = 0
        for parsed_row in parsed.rows:
            row = parsed_row.data
            subscription = subscriptions.get(row.subscription_id)
            problem = None
            if subscription is None:
                problem = f"Unknown subscription '{row.subscription_id}'"
            elif not subscription.confirmed:
                problem = f"Subscription '{row.subscription_id}' is not confirmed"
            if problem:
                errors.append(
                    RowError(
                        row=parsed_row.row,
                        field="subscription_id",
                        value=row.subscription_id,
                        message=f"Row {parsed_row.row}: {problem}",
                    )
                )
                continue

            item = TokenAmount(token_type=row.token_type, token_amount=row.token_amount)
            self._repo.add(self._new_allocation(subscription, item, row.notes, now))
            subscription.allocated = True
            subscription.updated_at = now
            inserted += 1

        errors.sort(key=lambda e: e.row)
        result = BulkImportResult(
            total_rows=parsed.total_rows,
            inserted=inserted,
            failed=len({e.row for e in errors}),
            errors=errors,
        )
        if inserted:
            await self._commit_or_translate("Allocation import")
        logger.info(
            "Allocation import: %d inserted, %d failed",
            result.inserted, result.failed,
            extra={"project_id": str(project_id), "allocation_count": inserted},
        )
        return result

    async def export(
        self,
        project_id: UUID,
        options: ExportOptions,
        ids: Optional[List[UUID]] = None,
        today: Optional[date] = None,
    ) -> ExportFile:
        """Render the project's allocations (or the ``ids`` subset) as CSV."""
        await self._require_project(project_id)
        allocations = await self._repo.list_by_project(project_id)
        if ids:
            wanted = set(ids)
            allocations = [a for a in allocations if a.id in wanted]

        rows = []
        for a in allocations:
            investor, subscription = a.investor, a.subscription
            rows.append(
                ExportRow(
                    token_type=a.token_type,
                    amount=a.token_amount,
                    investor_name=investor.name if investor else "",
                    investor_email=investor.email if investor else "",
                    wallet_address=investor.wallet_address if investor else None,
                    subscription_ref=subscription.subscription_ref if subscription else "",
                    currency=subscription.currency if subscription else "",
                    subscription_amount=subscription.fiat_amount if subscription else 0,
                    confirmed=a.allocation_confirmed,
                    minted=a.minted,
                    distributed=a.distributed,
                )
            )

        filename = export_filename(options.file_format, today or date.today())
        logger.info("Exported %d allocation(s) as %s", len(rows), filename, extra={"project_id": str(project_id)})
        return ExportFile(filename=filename, content=render_allocations_csv(rows, options), row_count=len(rows))
