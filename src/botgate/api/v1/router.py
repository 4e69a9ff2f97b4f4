"""V1 API router aggregating all sub-routers."""

from fastapi import APIRouter

from botgate.api.v1.integrations.router import router as integrations_router
from botgate.api.v1.system.router import router as system_router

v1_router = APIRouter()
v1_router.include_router(system_router, prefix="/system", tags=["system"])
v1_router.include_router(integrations_router, prefix="/integrations", tags=["integrations"])
