"""SQLModel table models - import here so metadata is populated."""

from spv_ledger.models.allocation import AllocationStatus, TokenAllocation, TokenType  # noqa: F401
from spv_ledger.models.investor import Investor, KYCStatus  # noqa: F401
from spv_ledger.models.project import Project, ProjectStatus, ProjectType  # noqa: F401
from spv_ledger.models.subscription import Subscription  # noqa: F401
