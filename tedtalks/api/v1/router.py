"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from tedtalks.api.v1.health import router as health_router
from tedtalks.api.v1.imports import router as imports_router
from tedtalks.api.v1.talks import router as talks_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(imports_router, tags=["CSV Import"])
v1_router.include_router(talks_router, tags=["talks"])
