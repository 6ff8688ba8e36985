"""
PageHost — Artifact Catalog Tests
==================================
Persistence, atomic swap and concurrent writers.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import os

import pytest

from pagehost.catalog.models import Artifact
from pagehost.catalog.store import ArtifactCatalog
from pagehost.core.exceptions import ArtifactNotFoundError, StorageFailureError


def _record(artifact_id: str, name: str = "page.html") -> Artifact:
    return Artifact(
        id=artifact_id,
        content_ref=f"{artifact_id}.html",
        display_name=name,
        size=1,
        uploaded_at="2026-01-01T00:00:00+00:00",
    )


@pytest.mark.asyncio
async def test_load_creates_empty_catalog_file(settings):
    catalog = ArtifactCatalog(settings.catalog_path)
    await catalog.load()

    assert len(catalog) == 0
    assert json.loads(settings.catalog_path.read_text()) == {"artifacts": []}


@pytest.mark.asyncio
async def test_put_survives_reload(catalog, settings):
    await catalog.put(_record("a"))

    reloaded = ArtifactCatalog(settings.catalog_path)
    await reloaded.load()
    assert reloaded.require("a") == _record("a")


@pytest.mark.asyncio
async def test_remove_deletes_entry(catalog):
    await catalog.put(_record("a"))
    await catalog.remove("a")

    assert "a" not in catalog
    with pytest.raises(ArtifactNotFoundError):
        catalog.require("a")


@pytest.mark.asyncio
async def test_remove_unknown_raises(catalog):
    with pytest.raises(ArtifactNotFoundError):
        await catalog.remove("missing")


@pytest.mark.asyncio
async def test_failed_write_keeps_previous_state(catalog, monkeypatch):
    """The in-memory map only changes once the file write succeeded."""
    await catalog.put(_record("a"))

    async def _broken_write(snapshot):
        raise StorageFailureError("disk full")

    monkeypatch.setattr(catalog, "_write", _broken_write)

    with pytest.raises(StorageFailureError):
        await catalog.put(dataclasses.replace(_record("a"), display_name="renamed"))

    assert catalog.require("a").display_name == "page.html"


@pytest.mark.asyncio
async def test_malformed_catalog_is_reported(settings):
    settings.catalog_path.parent.mkdir(parents=True, exist_ok=True)
    settings.catalog_path.write_text("{not json")

    with pytest.raises(StorageFailureError):
        await ArtifactCatalog(settings.catalog_path).load()


@pytest.mark.asyncio
async def test_concurrent_writers_do_not_lose_updates(catalog, settings):
    """Writers for different ids race the read-then-write; none may be lost."""
    await asyncio.gather(*(catalog.put(_record(f"id{i}")) for i in range(20)))

    reloaded = ArtifactCatalog(settings.catalog_path)
    await reloaded.load()
    assert {a.id for a in reloaded.list()} == {f"id{i}" for i in range(20)}


@pytest.mark.asyncio
async def test_locked_serializes_one_id(catalog):
    order: list[str] = []

    async def _hold(tag: str) -> None:
        async with catalog.locked("a"):
            order.append(f"{tag}-in")
            await asyncio.sleep(0.01)
            order.append(f"{tag}-out")

    await asyncio.gather(_hold("x"), _hold("y"))

    assert order in (
        ["x-in", "x-out", "y-in", "y-out"],
        ["y-in", "y-out", "x-in", "x-out"],
    )
    assert catalog.active_locks == 0


@pytest.mark.asyncio
async def test_locked_releases_entry_when_body_raises(catalog):
    for i in range(100):
        with pytest.raises(ArtifactNotFoundError):
            async with catalog.locked(f"unknown{i}"):
                catalog.require(f"unknown{i}")

    assert catalog.active_locks == 0


@pytest.mark.asyncio
async def test_failed_file_write_leaves_no_temp_file(catalog, settings, monkeypatch):
    def _broken_fsync(fd):
        raise OSError("disk full")

    monkeypatch.setattr(os, "fsync", _broken_fsync)

    with pytest.raises(StorageFailureError):
        await catalog.put(_record("a"))

    assert [p.name for p in settings.catalog_path.parent.iterdir()] == ["catalog.json"]
    assert "a" not in catalog


def test_allocate_id_is_fresh(settings):
    catalog = ArtifactCatalog(settings.catalog_path)
    ids = {catalog.allocate_id() for _ in range(50)}
    assert len(ids) == 50
