"""
API v1 router - aggregates all endpoint routers.
"""

from fastapi import APIRouter

from portal_catalog.api.v1.admin import router as admin_router
from portal_catalog.api.v1.data import router as data_router
from portal_catalog.api.v1.datasets import router as datasets_router
from portal_catalog.api.v1.portal import router as portal_router
from portal_catalog.api.v1.sync_logs import router as sync_logs_router

api_router = APIRouter()

# Include all routers with their prefixes and tags
api_router.include_router(datasets_router, prefix="/datasets", tags=["Datasets"])
api_router.include_router(data_router, prefix="/data", tags=["Data"])
api_router.include_router(portal_router, prefix="/portal", tags=["Portal"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(sync_logs_router, prefix="/sync-logs", tags=["Sync Logs"])
