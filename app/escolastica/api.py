from fastapi import APIRouter

from app.escolastica.core.config import settings
from app.escolastica.routers.auth import router as auth_router
from app.escolastica.routers.health import router as health_router
from app.escolastica.routers.metrics import router as metrics_router
from app.escolastica.routers.transfers import router as transfers_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(transfers_router, tags=["transfers"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
