"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from config.settings import get_settings
from services.batch_scheduler import get_batch_scheduler
from services.record_store_client import get_record_store_client

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health():
    """Liveness plus a short view of the record store and batch state."""
    settings = get_settings()
    return {
        "status": "healthy",
        "recordStore": {
            "mode": "mock" if settings.use_mock_data else "http",
            "circuitOpen": False if settings.use_mock_data else get_record_store_client().circuit_open,
        },
        "batch": get_batch_scheduler().get_progress().status.value,
    }
