"""
PageHost — Test Fixtures
=========================
Shared pytest fixtures.

Every test gets its own data directory under ``tmp_path``; the catalog,
blob store and services are built against it. The HTTP client talks to a
fresh app through ``ASGITransport`` (lifespan is not run, so the fixture
loads the catalog itself).
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from pagehost.catalog.store import ArtifactCatalog
from pagehost.services.versioning import UploadedDocument, VersionManager
from pagehost.storage.blob_store import BlobStore


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Ensure a fresh Settings instance for each test."""
    from pagehost.core.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Return a settings instance pointed at a per-test data directory."""
    monkeypatch.setenv("PAGEHOST_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PAGEHOST_ENVIRONMENT", "development")
    monkeypatch.setenv("PAGEHOST_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("PAGEHOST_LOG_FORMAT", "console")
    from pagehost.core.config import get_settings
    get_settings.cache_clear()
    return get_settings()


@pytest.fixture
def blobs(settings):
    store = BlobStore(settings.uploads_dir)
    store.ensure_root()
    return store


@pytest.fixture
async def catalog(settings):
    c = ArtifactCatalog(settings.catalog_path)
    await c.load()
    return c


@pytest.fixture
def manager(catalog, blobs):
    return VersionManager(catalog, blobs, max_backups=5)


# ── HTTP client ──────────────────────────────────────────────────────────
@pytest.fixture
async def test_app(settings):
    """App wired to the per-test catalog."""
    import pagehost.catalog.store as store_mod

    BlobStore(settings.uploads_dir).ensure_root()
    await store_mod.init_catalog(settings.catalog_path)

    from pagehost.main import create_app
    application = create_app()
    yield application

    application.dependency_overrides.clear()
    store_mod.close_catalog()


@pytest.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ── Helpers ──────────────────────────────────────────────────────────────
def html_page(label: str) -> bytes:
    """A small, distinct HTML document."""
    return (
        f"<!DOCTYPE html><html><head><title>{label}</title></head>"
        f"<body><h1>{label}</h1></body></html>"
    ).encode("utf-8")


def html_document(label: str, filename: str = "page.html") -> UploadedDocument:
    return UploadedDocument(
        content=html_page(label),
        filename=filename,
        media_type="text/html",
    )


@pytest.fixture
def page():
    """Builder for distinct HTML bytes: ``page("a")``."""
    return html_page


@pytest.fixture
def document():
    """Builder for HTML uploads: ``document("a")``."""
    return html_document
