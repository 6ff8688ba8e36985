"""
PageHost — FastAPI Application
===============================
Application factory with lifecycle management and middleware pipeline.

Usage:
    uvicorn pagehost.main:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from pagehost.api.errors import register_exception_handlers
from pagehost.api.health import router as health_router
from pagehost.api.routes import proxy_router, services_router, view_router
from pagehost.catalog.store import close_catalog, init_catalog
from pagehost.core.config import get_settings
from pagehost.core.logging import configure_logging, get_logger
from pagehost.core.middleware import CorrelationMiddleware
from pagehost.services.versioning import ensure_storage_ready
from pagehost.storage.blob_store import BlobStore


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle.

    Startup: configure logging, create the content root, load the catalog.
    Shutdown: release the catalog.
    """
    logger = get_logger("pagehost.main")
    settings = get_settings()

    # ── Startup ──────────────────────────────────────────────────────
    configure_logging()
    logger.info("app.starting", environment=settings.environment.value)

    ensure_storage_ready(BlobStore(settings.uploads_dir))
    catalog = await init_catalog(settings.catalog_path)
    logger.info(
        "catalog.ready",
        path=str(settings.catalog_path),
        services=len(catalog),
        uploads_dir=str(settings.uploads_dir),
    )

    logger.info("app.started")
    yield

    # ── Shutdown ─────────────────────────────────────────────────────
    logger.info("app.stopping")
    close_catalog()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    application = FastAPI(
        title="PageHost",
        description="Versioned HTML hosting with a same-origin forwarding proxy",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    application.add_middleware(CorrelationMiddleware)
    register_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(services_router)
    application.include_router(view_router)
    application.include_router(proxy_router)

    return application


# Module-level instance for ``uvicorn pagehost.main:app``
app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("pagehost.main:app", host=_settings.host, port=_settings.port)
