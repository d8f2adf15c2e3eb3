"""
Unit tests for InvestorService: business logic layer.

All repository calls are mocked.  Tests cover:
- get_all_investors / get_investor
- create_investor: success, duplicate email pre-check, TOCTOU race
- update_investor: KYC stamping, wallet update
- import_csv: insert vs update, row errors, single commit
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from spv_ledger.core.exceptions import ConflictException, NotFoundException
from spv_ledger.models.investor import KYCStatus
from spv_ledger.schemas.investor import InvestorCreate, InvestorUpdate
from spv_ledger.services.investor_service import InvestorService

from .conftest import BASE_TIME, INVESTOR_ID, WALLET, make_investor

# ────────────────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def investor_repo(mock_repo_factory):
    """Mocked InvestorRepository."""
    return mock_repo_factory()


@pytest.fixture()
def investor_service(investor_repo):
    """InvestorService wired to the mocked repository."""
    return InvestorService(investor_repo)


# ────────────────────────────────────────────────────────────────────────────
# Queries
# ────────────────────────────────────────────────────────────────────────────


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_all_passes_pagination(self, investor_service, investor_repo):
        investor_repo.get_all.return_value = [make_investor()]
        result = await investor_service.get_all_investors(skip=10, limit=5)
        investor_repo.get_all.assert_awaited_once_with(skip=10, limit=5)
        assert len(result) == 1

    @pytest.mark.asyncio
    async def test_get_missing_investor_raises_404(self, investor_service, investor_repo):
        investor_repo.get.return_value = None
        with pytest.raises(NotFoundException):
            await investor_service.get_investor(uuid4())


# ────────────────────────────────────────────────────────────────────────────
# create_investor
# ────────────────────────────────────────────────────────────────────────────


class TestCreateInvestor:
    @pytest.mark.asyncio
    async def test_creates_with_lower_cased_email(self, investor_service, investor_repo):
        investor_repo.get_by_email.return_value = None
        investor_repo.create.side_effect = lambda inv: inv

        result = await investor_service.create_investor(
            InvestorCreate(name="Amelia", email="Amelia@Hart.com", wallet_address=WALLET)
        )

        investor_repo.get_by_email.assert_awaited_once_with("amelia@hart.com")
        assert result.email == "amelia@hart.com"
        assert result.kyc_updated_at is None

    @pytest.mark.asyncio
    async def test_non_default_kyc_is_stamped(self, investor_service, investor_repo):
        investor_repo.get_by_email.return_value = None
        investor_repo.create.side_effect = lambda inv: inv

        result = await investor_service.create_investor(
            InvestorCreate(name="A", email="a@example.com", kyc_status=KYCStatus.APPROVED)
        )
        assert result.kyc_updated_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_email_raises_409(self, investor_service, investor_repo):
        investor_repo.get_by_email.return_value = make_investor()
        with pytest.raises(ConflictException, match="already exists"):
            await investor_service.create_investor(
                InvestorCreate(name="A", email="test@example.com")
            )
        investor_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_toctou_race_rolls_back_and_raises_409(self, investor_service, investor_repo):
        investor_repo.get_by_email.return_value = None
        investor_repo.create.side_effect = IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(ConflictException):
            await investor_service.create_investor(InvestorCreate(name="A", email="a@example.com"))
        investor_repo.rollback.assert_awaited_once()


# ────────────────────────────────────────────────────────────────────────────
# update_investor
# ────────────────────────────────────────────────────────────────────────────


class TestUpdateInvestor:
    @pytest.mark.asyncio
    async def test_kyc_change_stamps_timestamp(self, investor_service, investor_repo):
        investor = make_investor(kyc_status=KYCStatus.PENDING)
        investor_repo.get.return_value = investor
        investor_repo.update.side_effect = lambda inv: inv

        result = await investor_service.update_investor(
            INVESTOR_ID, InvestorUpdate(kyc_status=KYCStatus.APPROVED)
        )

        assert result.kyc_status == KYCStatus.APPROVED
        assert result.kyc_updated_at is not None
        assert result.updated_at > BASE_TIME

    @pytest.mark.asyncio
    async def test_same_kyc_does_not_restamp(self, investor_service, investor_repo):
        investor = make_investor(kyc_status=KYCStatus.APPROVED)
        investor_repo.get.return_value = investor
        investor_repo.update.side_effect = lambda inv: inv

        result = await investor_service.update_investor(
            INVESTOR_ID, InvestorUpdate(kyc_status=KYCStatus.APPROVED)
        )
        assert result.kyc_updated_at is None

    @pytest.mark.asyncio
    async def test_wallet_can_be_cleared(self, investor_service, investor_repo):
        investor_repo.get.return_value = make_investor()
        investor_repo.update.side_effect = lambda inv: inv

        result = await investor_service.update_investor(
            INVESTOR_ID, InvestorUpdate(wallet_address=None)
        )
        assert result.wallet_address is None

    @pytest.mark.asyncio
    async def test_missing_investor_raises_404(self, investor_service, investor_repo):
        investor_repo.get.return_value = None
        with pytest.raises(NotFoundException):
            await investor_service.update_investor(uuid4(), InvestorUpdate(notes="x"))
        investor_repo.update.assert_not_awaited()


# ────────────────────────────────────────────────────────────────────────────
# import_csv
# ────────────────────────────────────────────────────────────────────────────


class TestImportCsv:
    @pytest.mark.asyncio
    async def test_inserts_updates_and_reports(self, investor_service, investor_repo):
        existing = make_investor(
            email="test@example.com", wallet_address=None, kyc_status=KYCStatus.PENDING
        )
        investor_repo.get_by_emails.return_value = {"test@example.com": existing}
        payload = (
            "name,email,wallet_address,kyc_status\n"
            f"Updated Name,TEST@example.com,{WALLET},approved\n"
            "New Person,new@example.com,,\n"
            "Broken,broken@example.com,not-a-hex-address,\n"
        ).encode()

        result = await investor_service.import_csv(payload)

        assert (result.total_rows, result.inserted, result.updated, result.failed) == (3, 1, 1, 1)
        assert result.errors[0].row == 3
        assert result.errors[0].value == "not-a-hex-address"
        assert existing.name == "Updated Name"
        assert existing.wallet_address == WALLET
        assert existing.kyc_updated_at is not None
        (inserted,) = [c.args[0] for c in investor_repo.add.call_args_list]
        assert inserted.email == "new@example.com"
        investor_repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_valid_skips_commit(self, investor_service, investor_repo):
        result = await investor_service.import_csv(b"name,email\nA,nope\n")
        assert result.failed == 1
        investor_repo.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_integrity_error_rolls_back(self, investor_service, investor_repo):
        investor_repo.get_by_emails.return_value = {}
        investor_repo.commit.side_effect = IntegrityError("INSERT", {}, Exception("unique"))
        with pytest.raises(ConflictException):
            await investor_service.import_csv(b"name,email\nA,a@example.com\n")
        investor_repo.rollback.assert_awaited_once()
