"""
PageHost — Version Manager
===========================
Upload, replace, restore, delete and rename for hosted services.

Every content change follows stage-then-swap:

1. New content is written to a fresh blob before any catalog state changes.
2. Under the artifact's lock, the next record is computed and persisted in a
   single catalog write.
3. Only after the catalog write succeeds are evicted blobs removed; a failed
   removal is logged and ignored because the catalog is authoritative.

A crash or failed write between (1) and (2) leaves the prior record intact
and at worst an orphaned staged blob, which is cleaned up when possible.

Versioning rules:
- ``version`` starts at 1 and every content change (replace or restore)
  assigns ``max(current, *backups) + 1``.
- Backups are most-recent-first and bounded by ``max_backups``; the tail is
  evicted when a push would exceed the bound.
- Restoring never reuses the promoted backup's original version number.

Usage:
    manager = VersionManager(catalog, blobs)
    artifact = await manager.create(UploadedDocument(b"<html>", "a.html", "text/html"))
    version = await manager.replace(artifact.id, UploadedDocument(...))
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import PurePath

from pagehost.catalog.models import Artifact, BackupEntry, utcnow_iso
from pagehost.catalog.store import ArtifactCatalog
from pagehost.core.exceptions import (
    InvalidBackupIndexError,
    InvalidContentError,
    InvalidNameError,
    PageHostError,
    StorageFailureError,
)
from pagehost.core.logging import get_logger
from pagehost.storage.blob_store import BlobStore

logger = get_logger(__name__)

HTML_MEDIA_TYPE = "text/html"
HTML_EXTENSION = ".html"
DEFAULT_MAX_BACKUPS = 5


# ── Upload Filter ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class UploadedDocument:
    """One submitted document as received from the client."""

    content: bytes
    filename: str | None = None
    media_type: str | None = None


def is_html_document(filename: str | None, media_type: str | None) -> bool:
    """
    Accept when the declared media type is ``text/html`` or the filename
    ends in ``.html``. Anything else is rejected.
    """
    declared = (media_type or "").split(";", 1)[0].strip().lower()
    if declared == HTML_MEDIA_TYPE:
        return True
    if filename and PurePath(filename).suffix.lower() == HTML_EXTENSION:
        return True
    return False


def validate_document(document: UploadedDocument, max_bytes: int) -> None:
    """Raise ``InvalidContentError`` unless the document is acceptable HTML."""
    if not is_html_document(document.filename, document.media_type):
        raise InvalidContentError("Only HTML files can be uploaded")
    if not document.content:
        raise InvalidContentError("Uploaded document is empty")
    if len(document.content) > max_bytes:
        raise InvalidContentError(
            f"Uploaded document exceeds the {max_bytes}-byte limit"
        )


# ── Result Objects ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class BackupListing:
    """Backups of one service, most recent first, plus its current version."""

    current_version: int
    backups: tuple[BackupEntry, ...]


# ── Version Manager ─────────────────────────────────────────────────────


class VersionManager:
    """
    Implements the versioned-artifact lifecycle against the catalog.

    All record mutations for one artifact are serialized by the catalog's
    per-artifact lock; different artifacts proceed concurrently.
    """

    def __init__(
        self,
        catalog: ArtifactCatalog,
        blobs: BlobStore,
        *,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        max_upload_bytes: int = 10 * 1024 * 1024,
        max_display_name_length: int = 255,
    ) -> None:
        self._catalog = catalog
        self._blobs = blobs
        self._max_backups = max_backups
        self._max_upload_bytes = max_upload_bytes
        self._max_display_name_length = max_display_name_length

    @property
    def max_backups(self) -> int:
        return self._max_backups

    @property
    def max_upload_bytes(self) -> int:
        return self._max_upload_bytes

    # ── Queries ─────────────────────────────────────────────────────────

    def get(self, artifact_id: str) -> Artifact:
        return self._catalog.require(artifact_id)

    def list(self) -> list[Artifact]:
        return self._catalog.list()

    def list_backups(self, artifact_id: str) -> BackupListing:
        artifact = self._catalog.require(artifact_id)
        return BackupListing(
            current_version=artifact.version,
            backups=artifact.backups,
        )

    # ── Create ──────────────────────────────────────────────────────────

    async def create(
        self,
        document: UploadedDocument,
        display_name: str | None = None,
    ) -> Artifact:
        """Store a new service at version 1 with no backups."""
        validate_document(document, self._max_upload_bytes)
        name = self._clean_name(display_name or document.filename or "untitled.html")

        artifact_id = self._catalog.allocate_id()
        async with self._catalog.locked(artifact_id):
            content_ref = await self._blobs.write(document.content, HTML_EXTENSION)
            artifact = Artifact(
                id=artifact_id,
                content_ref=content_ref,
                display_name=name,
                size=len(document.content),
                uploaded_at=utcnow_iso(),
                version=1,
            )
            try:
                await self._catalog.put(artifact)
            except PageHostError:
                await self._blobs.discard(content_ref, reason="create_rollback")
                raise

        logger.info(
            "artifact.created",
            artifact_id=artifact_id,
            display_name=name,
            size=artifact.size,
        )
        return artifact

    # ── Replace ─────────────────────────────────────────────────────────

    async def replace(self, artifact_id: str, document: UploadedDocument) -> int:
        """
        Swap in new content, demoting the current revision to a backup.

        Returns the new version number.
        """
        validate_document(document, self._max_upload_bytes)
        self._catalog.require(artifact_id)

        staged_ref = await self._blobs.write(document.content, HTML_EXTENSION)
        try:
            async with self._catalog.locked(artifact_id):
                current = self._catalog.require(artifact_id)
                now = utcnow_iso()
                backups, evicted = self._bounded([current.as_backup(now), *current.backups])
                updated = dataclasses.replace(
                    current,
                    content_ref=staged_ref,
                    size=len(document.content),
                    uploaded_at=now,
                    backups=backups,
                )
                updated = dataclasses.replace(updated, version=updated.next_version())
                await self._catalog.put(updated)
        except PageHostError:
            await self._blobs.discard(staged_ref, reason="replace_rollback")
            raise

        await self._evict(artifact_id, evicted)
        logger.info(
            "artifact.replaced",
            artifact_id=artifact_id,
            version=updated.version,
            backups=len(updated.backups),
        )
        return updated.version

    # ── Restore ─────────────────────────────────────────────────────────

    async def restore(self, artifact_id: str, backup_index: int) -> int:
        """
        Promote ``backups[backup_index]`` to current under a new version.

        The current revision is pushed to the front of the backups and the
        promoted entry is removed, so the backup count is unchanged.
        """
        async with self._catalog.locked(artifact_id):
            current = self._catalog.require(artifact_id)
            if backup_index < 0 or backup_index >= len(current.backups):
                raise InvalidBackupIndexError(
                    f"Backup index {backup_index} does not exist",
                    artifact_id=artifact_id,
                )

            target = current.backups[backup_index]
            size = await self._blobs.size(target.content_ref)

            now = utcnow_iso()
            pushed = [current.as_backup(now), *current.backups]
            # The push shifted the target one slot towards the tail.
            del pushed[backup_index + 1]
            backups, evicted = self._bounded(pushed)

            updated = dataclasses.replace(
                current,
                content_ref=target.content_ref,
                size=size,
                uploaded_at=now,
                backups=backups,
            )
            updated = dataclasses.replace(updated, version=updated.next_version())
            await self._catalog.put(updated)

        await self._evict(artifact_id, evicted)
        logger.info(
            "artifact.restored",
            artifact_id=artifact_id,
            restored_version=target.version,
            version=updated.version,
        )
        return updated.version

    # ── Delete ──────────────────────────────────────────────────────────

    async def delete(self, artifact_id: str) -> None:
        """Remove every blob of the service, then its catalog entry."""
        async with self._catalog.locked(artifact_id):
            current = self._catalog.require(artifact_id)
            for content_ref in current.content_refs:
                await self._blobs.discard(content_ref, reason="artifact_deleted")
            await self._catalog.remove(artifact_id)

        logger.info("artifact.deleted", artifact_id=artifact_id)

    # ── Rename ──────────────────────────────────────────────────────────

    async def rename(self, artifact_id: str, new_display_name: str | None) -> str:
        """Change the display label. Content and version are untouched."""
        name = self._clean_name(new_display_name)
        async with self._catalog.locked(artifact_id):
            current = self._catalog.require(artifact_id)
            await self._catalog.put(dataclasses.replace(current, display_name=name))

        logger.info("artifact.renamed", artifact_id=artifact_id, display_name=name)
        return name

    # ── Helpers ─────────────────────────────────────────────────────────

    def _clean_name(self, raw: str | None) -> str:
        name = (raw or "").strip()
        if not name:
            raise InvalidNameError("Display name must not be empty")
        if len(name) > self._max_display_name_length:
            raise InvalidNameError(
                f"Display name exceeds {self._max_display_name_length} characters"
            )
        return name

    def _bounded(
        self, backups: list[BackupEntry]
    ) -> tuple[tuple[BackupEntry, ...], list[BackupEntry]]:
        """Split into (kept, evicted) at the backup bound."""
        return tuple(backups[: self._max_backups]), backups[self._max_backups :]

    async def _evict(self, artifact_id: str, evicted: list[BackupEntry]) -> None:
        for entry in evicted:
            await self._blobs.discard(entry.content_ref, reason="backup_evicted")
            logger.info(
                "backup.evicted",
                artifact_id=artifact_id,
                version=entry.version,
                content_ref=entry.content_ref,
            )


def ensure_storage_ready(blobs: BlobStore) -> None:
    """Create the content root; raise ``StorageFailureError`` if impossible."""
    try:
        blobs.ensure_root()
    except OSError as exc:
        raise StorageFailureError(f"Cannot create content root {blobs.root}: {exc}") from exc
