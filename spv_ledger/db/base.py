"""
Database model registry.

Importing this module registers every table model with SQLModel's metadata,
which ``create_all()`` needs.
"""

from spv_ledger.models.allocation import TokenAllocation  # noqa: F401
from spv_ledger.models.investor import Investor  # noqa: F401
from spv_ledger.models.project import Project  # noqa: F401
from spv_ledger.models.subscription import Subscription  # noqa: F401
