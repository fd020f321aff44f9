"""API v1 router initialization."""

from fastapi import APIRouter

from emdr.api.v1.auth import router as auth_router
from emdr.api.v1.health import router as health_router
from emdr.api.v1.protocols import router as protocols_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["Auth"])
router.include_router(protocols_router, prefix="/protocols", tags=["Protocols"])
router.include_router(health_router, prefix="/health", tags=["Health"])
