"""
Chain gateways used by minting and distribution.

No blockchain is contacted yet. :class:`PlaceholderChainGateway` returns a
random ``0x``-prefixed 32-byte hex string in place of a transaction hash; a
real implementation plugs in behind the same two interfaces.
"""

import abc
import logging
import secrets
import uuid
from decimal import Decimal
from typing import Sequence

logger = logging.getLogger(__name__)


class MintingGateway(abc.ABC):
    @abc.abstractmethod
    async def mint(
        self,
        project_id: uuid.UUID,
        token_type: str,
        allocation_ids: Sequence[uuid.UUID],
        amount: Decimal,
    ) -> str:
        """Mint ``amount`` tokens of ``token_type`` for the given allocations; return the tx hash."""


class DistributionGateway(abc.ABC):
    @abc.abstractmethod
    async def distribute(self, transfers: Sequence[tuple[str, str, Decimal]]) -> str:
        """Send ``(wallet_address, token_type, amount)`` transfers; return the tx hash."""


def placeholder_tx_hash() -> str:
    return "0x" + secrets.token_hex(32)


class PlaceholderChainGateway(MintingGateway, DistributionGateway):
    """Bookkeeping-only gateway: records nothing on chain, returns a placeholder hash."""

    async def mint(self, project_id, token_type, allocation_ids, amount) -> str:
        tx_hash = placeholder_tx_hash()
        logger.debug(
            "Placeholder mint of %s %s for %d allocation(s) in project %s -> %s",
            amount, token_type, len(allocation_ids), project_id, tx_hash,
        )
        return tx_hash

    async def distribute(self, transfers) -> str:
        tx_hash = placeholder_tx_hash()
        logger.debug("Placeholder distribution of %d transfer(s) -> %s", len(transfers), tx_hash)
        return tx_hash


_gateway = PlaceholderChainGateway()


def get_chain_gateway() -> PlaceholderChainGateway:
    """FastAPI dependency returning the configured gateway."""
    return _gateway
