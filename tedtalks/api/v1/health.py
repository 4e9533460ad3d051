"""Health check endpoint."""

import platform
import sys
from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()

# Set by main.py during lifespan
_dispatcher = None
_service_info: dict = {}


def set_dispatcher(dispatcher, **service_info):
    global _dispatcher, _service_info
    _dispatcher = dispatcher
    _service_info = service_info


@router.get("/health")
async def health_check():
    """Service health and import worker pool status."""
    return {
        "status": "healthy" if _dispatcher is not None else "starting",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **_service_info,
        "imports": _dispatcher.stats() if _dispatcher is not None else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
