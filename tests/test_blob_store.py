"""
PageHost — Blob Store Tests
============================
"""

from __future__ import annotations

import os

import pytest

from pagehost.core.exceptions import ArtifactNotFoundError, StorageFailureError


@pytest.mark.asyncio
async def test_write_then_read(blobs):
    ref = await blobs.write(b"<html></html>", ".html")

    assert ref.endswith(".html")
    assert await blobs.read(ref) == b"<html></html>"
    assert await blobs.size(ref) == len(b"<html></html>")


@pytest.mark.asyncio
async def test_write_uses_fresh_refs(blobs):
    first = await blobs.write(b"a")
    second = await blobs.write(b"a")
    assert first != second


@pytest.mark.asyncio
async def test_read_missing_blob_is_not_found(blobs):
    with pytest.raises(ArtifactNotFoundError):
        await blobs.read("0123.html")


@pytest.mark.asyncio
async def test_delete_is_idempotent(blobs):
    ref = await blobs.write(b"x")

    assert await blobs.delete(ref) is True
    assert await blobs.delete(ref) is False
    assert not await blobs.exists(ref)


@pytest.mark.asyncio
async def test_discard_swallows_failures(blobs, monkeypatch):
    async def _broken_delete(content_ref):
        raise StorageFailureError("permission denied")

    monkeypatch.setattr(blobs, "delete", _broken_delete)
    await blobs.discard("whatever.html", reason="test")


@pytest.mark.parametrize("ref", ["../catalog.json", "sub/x.html", ""])
def test_refs_cannot_escape_root(blobs, ref):
    with pytest.raises(StorageFailureError):
        blobs.path_for(ref)


@pytest.mark.asyncio
async def test_failed_write_leaves_no_temp_file(blobs, monkeypatch):
    def _broken_fsync(fd):
        raise OSError("disk full")

    monkeypatch.setattr(os, "fsync", _broken_fsync)

    with pytest.raises(StorageFailureError):
        await blobs.write(b"<html></html>")

    assert list(blobs.root.iterdir()) == []
