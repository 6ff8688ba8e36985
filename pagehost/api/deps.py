"""
PageHost — API Dependencies
============================
Shared FastAPI dependency injectors for the API layer.

Route handlers use these to reach the catalog, blob store and services
without coupling to how they are constructed. Routes addressing one service
also bind its id into the structured-log context. Tests swap any of them via
``app.dependency_overrides``.
"""

from __future__ import annotations

import structlog
from fastapi import Depends

from pagehost.catalog.store import ArtifactCatalog, get_catalog
from pagehost.core.config import get_settings
from pagehost.services.content_server import ContentServer
from pagehost.services.forwarding_proxy import ForwardingProxy
from pagehost.services.versioning import VersionManager
from pagehost.storage.blob_store import BlobStore


def get_artifact_catalog() -> ArtifactCatalog:
    """Return the process-wide catalog loaded at startup."""
    return get_catalog()


def get_blob_store() -> BlobStore:
    return BlobStore(get_settings().uploads_dir)


def get_version_manager(
    catalog: ArtifactCatalog = Depends(get_artifact_catalog),
    blobs: BlobStore = Depends(get_blob_store),
) -> VersionManager:
    settings = get_settings()
    return VersionManager(
        catalog,
        blobs,
        max_backups=settings.max_backups,
        max_upload_bytes=settings.max_upload_bytes,
        max_display_name_length=settings.max_display_name_length,
    )


def get_content_server(
    catalog: ArtifactCatalog = Depends(get_artifact_catalog),
    blobs: BlobStore = Depends(get_blob_store),
) -> ContentServer:
    return ContentServer(catalog, blobs)


def get_forwarding_proxy() -> ForwardingProxy:
    return ForwardingProxy(timeout=get_settings().proxy_timeout_seconds)


async def bind_artifact_context(artifact_id: str) -> str:
    """
    Attach the path's ``artifact_id`` to every log line of this request.

    Must stay async; sync dependencies run in a copied worker-thread context.
    """
    structlog.contextvars.bind_contextvars(artifact_id=artifact_id)
    return artifact_id
