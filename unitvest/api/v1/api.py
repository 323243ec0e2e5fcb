"""
V1 API router aggregation.

All versioned endpoint routers are mounted here; ``main.py`` mounts this
router at ``/api/v1``.
"""

from fastapi import APIRouter

from unitvest.api.v1.endpoints import admin, investments, notifications, profiles

api_router = APIRouter()

api_router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
api_router.include_router(investments.router, prefix="/investments", tags=["Investments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
