"""
PageHost — Content Blob Store
==============================
File-backed storage for hosted document revisions.

Each blob lives in a single directory under a generated name
(``<uuid4hex><ext>``). The name is the ``content_ref`` recorded in the
catalog. All disk I/O runs in a worker thread so the event loop never
blocks on the filesystem.

Usage:
    store = BlobStore(Path("./data/uploads"))
    ref = await store.write(b"<html>...</html>", ".html")
    data = await store.read(ref)
"""

from __future__ import annotations

import asyncio
import os
import uuid
from pathlib import Path

from pagehost.core.exceptions import ArtifactNotFoundError, StorageFailureError
from pagehost.core.logging import get_logger

logger = get_logger(__name__)


class BlobStore:
    """Flat directory of immutable content blobs addressed by ``content_ref``."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, content_ref: str) -> Path:
        """
        Resolve a ref to its file path.

        Refs are bare file names; anything that would escape the root is
        refused.
        """
        if not content_ref or Path(content_ref).name != content_ref:
            raise StorageFailureError(f"Invalid content reference: {content_ref!r}")
        return self._root / content_ref

    @staticmethod
    def new_ref(suffix: str) -> str:
        return f"{uuid.uuid4().hex}{suffix.lower()}"

    # ── Async API ───────────────────────────────────────────────────────

    async def write(self, data: bytes, suffix: str = ".html") -> str:
        """Persist ``data`` under a fresh ref and return the ref."""
        ref = self.new_ref(suffix)
        path = self.path_for(ref)

        def _write() -> None:
            self.ensure_root()
            tmp = path.with_name(f".{path.name}.tmp")
            try:
                with open(tmp, "wb") as fh:
                    fh.write(data)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, path)
            except OSError:
                tmp.unlink(missing_ok=True)
                raise

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageFailureError(f"Failed to write content blob: {exc}") from exc

        logger.debug("blob.written", content_ref=ref, size=len(data))
        return ref

    async def read(self, content_ref: str) -> bytes:
        """Return the blob's bytes. Raises ``ArtifactNotFoundError`` if absent."""
        path = self.path_for(content_ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise ArtifactNotFoundError(f"Content blob {content_ref} is missing") from exc
        except OSError as exc:
            raise StorageFailureError(f"Failed to read content blob: {exc}") from exc

    async def size(self, content_ref: str) -> int:
        path = self.path_for(content_ref)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError as exc:
            raise StorageFailureError(f"Content blob {content_ref} is missing") from exc
        except OSError as exc:
            raise StorageFailureError(f"Failed to stat content blob: {exc}") from exc
        return stat.st_size

    async def exists(self, content_ref: str) -> bool:
        return await asyncio.to_thread(self.path_for(content_ref).is_file)

    async def delete(self, content_ref: str) -> bool:
        """
        Remove a blob. Idempotent: a missing blob returns ``False``.

        Other filesystem errors propagate as ``StorageFailureError``.
        """
        path = self.path_for(content_ref)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageFailureError(f"Failed to delete content blob: {exc}") from exc
        logger.debug("blob.deleted", content_ref=content_ref)
        return True

    async def discard(self, content_ref: str, *, reason: str) -> None:
        """Best-effort delete. Failures are logged and swallowed."""
        try:
            await self.delete(content_ref)
        except StorageFailureError as exc:
            logger.warning(
                "blob.delete_failed",
                content_ref=content_ref,
                reason=reason,
                error=str(exc),
            )
