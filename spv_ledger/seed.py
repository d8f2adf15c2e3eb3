"""
Seed script: populates the database with a sample SPV for development / demo.

Usage:
    python -m spv_ledger.seed

The script is idempotent: it checks for existing data before inserting.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from spv_ledger.db.session import AsyncSessionLocal, create_tables
from spv_ledger.models.allocation import AllocationStatus, TokenAllocation, TokenType
from spv_ledger.models.investor import Investor, KYCStatus
from spv_ledger.models.project import Project
from spv_ledger.models.subscription import Subscription

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

PROJECT_ID = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")

PROJECTS = [
    Project(
        id=PROJECT_ID,
        name="Harbour Logistics SPV",
        description="Tokenised stake in a portfolio of port logistics assets",
        token_symbol="HLSPV",
        target_raise=Decimal("5000000.00"),
        created_at=datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
    ),
]

INVESTORS = [
    Investor(
        id=uuid.UUID("770e8400-e29b-41d4-a716-446655440002"),
        name="Amelia Hart",
        email="amelia@hartcapital.com",
        investor_type="hnwi",
        company="Hart Capital",
        wallet_address="0x52908400098527886E0F7030069857D2E4169EE7",
        kyc_status=KYCStatus.APPROVED,
        kyc_updated_at=datetime(2024, 2, 1, 9, 0, 0, tzinfo=timezone.utc),
    ),
    Investor(
        id=uuid.UUID("880e8400-e29b-41d4-a716-446655440003"),
        name="Smith Family Office",
        email="invest@smithfo.com",
        investor_type="family_office",
        wallet_address="0x8617E340B3D01FA5F11F306F4090FD50E238070D",
        kyc_status=KYCStatus.APPROVED,
        kyc_updated_at=datetime(2024, 2, 3, 9, 0, 0, tzinfo=timezone.utc),
    ),
    Investor(
        id=uuid.UUID("440e8400-e29b-41d4-a716-446655440040"),
        name="Jane Doe",
        email="jane.doe@example.com",
        investor_type="individual",
        kyc_status=KYCStatus.PENDING,
    ),
]

SUBSCRIPTIONS = [
    Subscription(
        id=uuid.UUID("990e8400-e29b-41d4-a716-446655440004"),
        subscription_ref="SUB-HLSPV-0001",
        investor_id=INVESTORS[0].id,
        project_id=PROJECT_ID,
        currency="USD",
        fiat_amount=Decimal("250000.00"),
        subscription_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
        confirmed=True,
        allocated=True,
    ),
    Subscription(
        id=uuid.UUID("aa0e8400-e29b-41d4-a716-446655440005"),
        subscription_ref="SUB-HLSPV-0002",
        investor_id=INVESTORS[1].id,
        project_id=PROJECT_ID,
        currency="USD",
        fiat_amount=Decimal("100000.00"),
        subscription_date=datetime(2024, 3, 5, tzinfo=timezone.utc),
        confirmed=True,
        allocated=True,
    ),
    Subscription(
        id=uuid.UUID("bb0e8400-e29b-41d4-a716-446655440006"),
        subscription_ref="SUB-HLSPV-0003",
        investor_id=INVESTORS[2].id,
        project_id=PROJECT_ID,
        currency="EUR",
        fiat_amount=Decimal("50000.00"),
        subscription_date=datetime(2024, 3, 9, tzinfo=timezone.utc),
    ),
]

ALLOCATIONS = [
    TokenAllocation(
        subscription_id=SUBSCRIPTIONS[0].id,
        investor_id=INVESTORS[0].id,
        project_id=PROJECT_ID,
        token_type=TokenType.ERC20.value,
        token_amount=Decimal("100"),
        status=AllocationStatus.CONFIRMED,
        allocation_date=datetime(2024, 3, 2, tzinfo=timezone.utc),
    ),
    TokenAllocation(
        subscription_id=SUBSCRIPTIONS[1].id,
        investor_id=INVESTORS[1].id,
        project_id=PROJECT_ID,
        token_type=TokenType.ERC20.value,
        token_amount=Decimal("50"),
        status=AllocationStatus.CONFIRMED,
        allocation_date=datetime(2024, 3, 6, tzinfo=timezone.utc),
    ),
]


async def seed() -> None:
    """Create tables and insert sample data if the database is empty."""
    await create_tables()

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Project).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data, skipping seed.")
            return

        session.add_all(PROJECTS)
        session.add_all(INVESTORS)
        await session.commit()

        # Subscriptions reference projects and investors; allocations reference subscriptions.
        session.add_all(SUBSCRIPTIONS)
        await session.commit()
        session.add_all(ALLOCATIONS)
        await session.commit()

        logger.info(
            "Seeded %d project(s), %d investors, %d subscriptions, %d allocations",
            len(PROJECTS), len(INVESTORS), len(SUBSCRIPTIONS), len(ALLOCATIONS),
        )


if __name__ == "__main__":
    asyncio.run(seed())
