"""
PageHost — Artifact Catalog
============================
Durable index of every hosted service.

The catalog is an in-memory ``id → Artifact`` map that is serialized to a
single JSON document on every mutation. Two lock scopes guard it:

- a per-artifact ``asyncio.Lock`` held by callers across the
  read-modify-persist of one record (``locked``). The entry exists only
  while someone holds or waits on it, so unknown ids leave nothing behind;
- a process-wide persist lock held while the next snapshot is built,
  written and swapped in, so writers touching different artifacts never
  lose each other's updates.

The file is replaced atomically (temp file + ``os.replace``). The in-memory
map is only swapped after the write succeeds, so a failed write leaves the
previous state visible both on disk and in memory.

Usage:
    catalog = ArtifactCatalog(Path("./data/catalog.json"))
    await catalog.load()
    async with catalog.locked(artifact_id):
        current = catalog.require(artifact_id)
        await catalog.put(dataclasses.replace(current, display_name="x"))
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pagehost.catalog.models import Artifact
from pagehost.core.exceptions import ArtifactNotFoundError, StorageFailureError
from pagehost.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ArtifactCatalog:
    """In-memory indexed catalog with a JSON serialization boundary."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._artifacts: dict[str, Artifact] = {}
        self._locks: dict[str, _LockEntry] = {}
        self._persist_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ── Loading ─────────────────────────────────────────────────────────

    async def load(self) -> None:
        """
        Read the catalog file, creating an empty one if it does not exist.

        A malformed file is a ``StorageFailureError``; it is never silently
        replaced.
        """

        def _read() -> dict[str, Any] | None:
            if not self._path.exists():
                return None
            with open(self._path, encoding="utf-8") as fh:
                return json.load(fh)

        try:
            raw = await asyncio.to_thread(_read)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageFailureError(f"Failed to load catalog {self._path}: {exc}") from exc

        if raw is None:
            async with self._persist_lock:
                await self._write({})
                self._artifacts = {}
            logger.info("catalog.created", path=str(self._path))
            return

        try:
            artifacts = [Artifact.from_dict(item) for item in raw.get("artifacts", [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageFailureError(f"Catalog {self._path} is malformed: {exc}") from exc

        self._artifacts = {a.id: a for a in artifacts}
        logger.info("catalog.loaded", path=str(self._path), count=len(self._artifacts))

    # ── Reads ───────────────────────────────────────────────────────────

    def get(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    def require(self, artifact_id: str) -> Artifact:
        artifact = self._artifacts.get(artifact_id)
        if artifact is None:
            raise ArtifactNotFoundError("Service not found", artifact_id=artifact_id)
        return artifact

    def list(self) -> list[Artifact]:
        return list(self._artifacts.values())

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._artifacts

    def __len__(self) -> int:
        return len(self._artifacts)

    # ── Locking ─────────────────────────────────────────────────────────

    @asynccontextmanager
    async def locked(self, artifact_id: str) -> AsyncIterator[None]:
        """
        Hold the mutual-exclusion scope for one artifact.

        The lock entry is dropped once its last holder or waiter leaves.
        """
        entry = self._locks.get(artifact_id)
        if entry is None:
            entry = self._locks[artifact_id] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(artifact_id) is entry:
                del self._locks[artifact_id]

    @property
    def active_locks(self) -> int:
        return len(self._locks)

    def allocate_id(self) -> str:
        """Return a fresh id not present in the catalog."""
        while True:
            candidate = uuid.uuid4().hex
            if candidate not in self._artifacts and candidate not in self._locks:
                return candidate

    # ── Writes ──────────────────────────────────────────────────────────

    async def put(self, artifact: Artifact) -> None:
        """Insert or replace one record, persisting before it becomes visible."""
        async with self._persist_lock:
            snapshot = dict(self._artifacts)
            snapshot[artifact.id] = artifact
            await self._write(snapshot)
            self._artifacts = snapshot

    async def remove(self, artifact_id: str) -> None:
        async with self._persist_lock:
            if artifact_id not in self._artifacts:
                raise ArtifactNotFoundError("Service not found", artifact_id=artifact_id)
            snapshot = dict(self._artifacts)
            del snapshot[artifact_id]
            await self._write(snapshot)
            self._artifacts = snapshot

    async def _write(self, snapshot: dict[str, Artifact]) -> None:
        payload = {"artifacts": [a.to_dict() for a in snapshot.values()]}

        def _dump() -> None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_name(f".{self._path.name}.tmp")
            try:
                with open(tmp, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self._path)
            except OSError:
                tmp.unlink(missing_ok=True)
                raise

        try:
            await asyncio.to_thread(_dump)
        except OSError as exc:
            logger.error("catalog.write_failed", path=str(self._path), error=str(exc))
            raise StorageFailureError(f"Failed to persist catalog: {exc}") from exc


# ── Module-level singleton ──────────────────────────────────────────────

_catalog: ArtifactCatalog | None = None


async def init_catalog(path: Path) -> ArtifactCatalog:
    """
    Load the module-level catalog.

    Called once during application startup.
    """
    global _catalog
    catalog = ArtifactCatalog(path)
    await catalog.load()
    _catalog = catalog
    return catalog


def get_catalog() -> ArtifactCatalog:
    """Return the initialized catalog. Raises if not initialized."""
    if _catalog is None:
        raise RuntimeError(
            "Artifact catalog not initialized. Call init_catalog() during startup."
        )
    return _catalog


def close_catalog() -> None:
    global _catalog
    _catalog = None
