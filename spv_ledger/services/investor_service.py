"""
Investor service: business logic layer for investor operations.

Handles duplicate-email detection before hitting the DB unique constraint,
providing a friendlier error message to the API consumer.

Race condition note:
    The pre-check ``get_by_email()`` followed by ``create()`` is subject to a
    TOCTOU race: two concurrent requests with the same email could both pass
    the check.  The DB unique constraint is the true safety net; the
    resulting ``IntegrityError`` is translated to a 409 Conflict so the
    client gets a clean error regardless of timing.
"""

import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import ConflictException, NotFoundException
from spv_ledger.models.investor import DEFAULT_INVESTOR_TYPE, Investor, KYCStatus
from spv_ledger.repositories.investor_repo import InvestorRepository
from spv_ledger.schemas.imports import BulkImportResult
from spv_ledger.schemas.investor import InvestorCreate, InvestorUpdate
from spv_ledger.services.csv_io import decode_upload, parse_investor_csv

logger = logging.getLogger(__name__)


class InvestorService:
    """Encapsulates CRUD + business rules for :class:`Investor`."""

    def __init__(self, investor_repo: InvestorRepository):
        self._repo = investor_repo

    # ── Queries ──

    async def get_all_investors(self, skip: int = 0, limit: int = 100) -> List[Investor]:
        return await self._repo.get_all(skip=skip, limit=limit)

    async def get_investor(self, investor_id: UUID) -> Investor:
        investor = await self._repo.get(investor_id)
        if not investor:
            raise NotFoundException("Investor", investor_id)
        return investor

    # ── Commands ──

    async def create_investor(self, investor_in: InvestorCreate) -> Investor:
        """
        Create a new investor.

        Raises :class:`ConflictException` if an investor with the same
        email (compared case-insensitively) already exists.
        """
        email = str(investor_in.email).lower()
        existing = await self._repo.get_by_email(email)
        if existing:
            raise ConflictException(f"An investor with email '{email}' already exists")

        investor = Investor(**investor_in.model_dump(exclude={"email"}), email=email)
        if investor.kyc_status != KYCStatus.NOT_STARTED:
            investor.kyc_updated_at = investor.created_at
        try:
            created = await self._repo.create(investor)
        except IntegrityError:
            # TOCTOU race: another request inserted the same email between
            # our check and our insert.
            await self._repo.rollback()
            logger.warning("IntegrityError caught for duplicate email '%s' (TOCTOU race)", email)
            raise ConflictException(f"An investor with email '{email}' already exists")

        logger.info("Created investor %s (%s)", created.id, created.name)
        return created

    async def update_investor(self, investor_id: UUID, update_in: InvestorUpdate) -> Investor:
        """
        Apply a partial update.

        A KYC status change stamps ``kyc_updated_at``; re-sending the current
        status does not.
        """
        investor = await self.get_investor(investor_id)
        changes = update_in.model_dump(exclude_unset=True)
        now = datetime.now(timezone.utc)

        new_kyc = changes.pop("kyc_status", None)
        if new_kyc is not None and new_kyc != investor.kyc_status:
            investor.kyc_status = new_kyc
            investor.kyc_updated_at = now
        for key, value in changes.items():
            if key in ("name", "investor_type") and value is None:
                continue  # non-nullable columns
            setattr(investor, key, value)
        investor.updated_at = now

        updated = await self._repo.update(investor)
        logger.info("Updated investor %s (fields=%s)", investor_id, sorted(update_in.model_fields_set))
        return updated

    async def import_csv(self, payload: bytes) -> BulkImportResult:
        """
        Bulk upsert investors from an uploaded CSV.

        Rows matching an existing investor by lower-cased email update it;
        the rest are inserted.  Every valid row is written in one commit and
        every invalid row is reported back with its row number.
        """
        parsed = parse_investor_csv(decode_upload(payload))
        result = BulkImportResult(
            total_rows=parsed.total_rows,
            failed=len({e.row for e in parsed.errors}),
            errors=parsed.errors,
        )
        if not parsed.rows:
            logger.info("Investor import: no valid rows (%d failed)", result.failed)
            return result

        existing = await self._repo.get_by_emails(p.data.email for p in parsed.rows)
        now = datetime.now(timezone.utc)
        for parsed_row in parsed.rows:
            row = parsed_row.data
            investor = existing.get(row.email)
            if investor is None:
                self._repo.add(
                    Investor(
                        name=row.name,
                        email=row.email,
                        company=row.company,
                        investor_type=row.type or DEFAULT_INVESTOR_TYPE,
                        wallet_address=row.wallet_address,
                        kyc_status=row.kyc_status or KYCStatus.NOT_STARTED,
                        kyc_updated_at=now if row.kyc_status else None,
                        notes=row.notes,
                    )
                )
                result.inserted += 1
                continue

            investor.name = row.name
            for attr in ("company", "wallet_address", "notes"):
                value = getattr(row, attr)
                if value is not None:
                    setattr(investor, attr, value)
            if row.type is not None:
                investor.investor_type = row.type
            if row.kyc_status is not None and row.kyc_status != investor.kyc_status:
                investor.kyc_status = row.kyc_status
                investor.kyc_updated_at = now
            investor.updated_at = now
            result.updated += 1

        try:
            await self._repo.commit()
        except IntegrityError:
            await self._repo.rollback()
            logger.warning("Investor import rolled back on IntegrityError")
            raise ConflictException("Investor import conflicts with existing data; nothing was saved")

        logger.info(
            "Investor import: %d inserted, %d updated, %d failed",
            result.inserted, result.updated, result.failed,
        )
        return result
