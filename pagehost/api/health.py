"""
PageHost — Health Endpoint
===========================
Reports whether the catalog is loaded and the content root is writable.
"""

from __future__ import annotations

import asyncio
import os

from fastapi import APIRouter
from pydantic import BaseModel

from pagehost.catalog.store import get_catalog
from pagehost.core.config import get_settings

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    catalog: str
    storage: str
    services: int


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="System health check",
    description="Returns catalog and content-storage status.",
)
async def health_check() -> HealthResponse:
    """
    Health endpoint.

    Returns 200 with component-level status.
    Each component is 'ok' or 'error'.
    Overall status is 'healthy' only if all components are ok.
    """
    catalog_status, count = _check_catalog()
    storage_status = await _check_storage()

    overall = "healthy" if catalog_status == "ok" and storage_status == "ok" else "degraded"

    return HealthResponse(
        status=overall,
        catalog=catalog_status,
        storage=storage_status,
        services=count,
    )


def _check_catalog() -> tuple[str, int]:
    try:
        return "ok", len(get_catalog())
    except RuntimeError:
        return "error", 0


async def _check_storage() -> str:
    uploads_dir = get_settings().uploads_dir

    def _probe() -> bool:
        return uploads_dir.is_dir() and os.access(uploads_dir, os.W_OK)

    try:
        return "ok" if await asyncio.to_thread(_probe) else "error"
    except OSError:
        return "error"
