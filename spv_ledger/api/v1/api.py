"""
V1 API router aggregation.

All versioned endpoint routers are mounted here; ``main.py`` mounts this
router at ``/api/v1``.
"""

from fastapi import APIRouter

from spv_ledger.api.v1.endpoints import allocations, investors, minting, projects, subscriptions

api_router = APIRouter()

api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(investors.router, prefix="/investors", tags=["Investors"])

# These routers define full paths (/projects/{id}/..., /subscriptions/..., /allocations/...)
# so they are mounted at the root of the v1 prefix.
api_router.include_router(subscriptions.router, tags=["Subscriptions"])
api_router.include_router(allocations.router, tags=["Allocations"])
api_router.include_router(minting.router, tags=["Minting & Distribution"])
