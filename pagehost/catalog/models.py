"""
PageHost — Catalog Records
===========================
Immutable records for hosted services and their retired revisions.

Records are frozen; every mutation builds a new ``Artifact`` with
``dataclasses.replace`` so a half-applied change can never be observed
through a shared reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True, slots=True)
class BackupEntry:
    """A retired revision, kept on disk until evicted."""

    content_ref: str
    version: int
    backed_up_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_ref": self.content_ref,
            "version": self.version,
            "backed_up_at": self.backed_up_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupEntry:
        return cls(
            content_ref=data["content_ref"],
            version=int(data["version"]),
            backed_up_at=data["backed_up_at"],
        )


@dataclass(frozen=True, slots=True)
class Artifact:
    """One hosted service: current content plus most-recent-first backups."""

    id: str
    content_ref: str
    display_name: str
    size: int
    uploaded_at: str
    version: int = 1
    backups: tuple[BackupEntry, ...] = field(default_factory=tuple)

    @property
    def all_versions(self) -> list[int]:
        return [self.version, *(b.version for b in self.backups)]

    @property
    def content_refs(self) -> list[str]:
        return [self.content_ref, *(b.content_ref for b in self.backups)]

    def next_version(self) -> int:
        """Max over current and backup versions, plus one."""
        return max(self.all_versions) + 1

    def as_backup(self, backed_up_at: str | None = None) -> BackupEntry:
        """Demote the current revision to a backup entry."""
        return BackupEntry(
            content_ref=self.content_ref,
            version=self.version,
            backed_up_at=backed_up_at or utcnow_iso(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content_ref": self.content_ref,
            "display_name": self.display_name,
            "size": self.size,
            "uploaded_at": self.uploaded_at,
            "version": self.version,
            "backups": [b.to_dict() for b in self.backups],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        return cls(
            id=data["id"],
            content_ref=data["content_ref"],
            display_name=data.get("display_name", ""),
            size=int(data.get("size", 0)),
            uploaded_at=data.get("uploaded_at", ""),
            version=int(data.get("version", 1)),
            backups=tuple(BackupEntry.from_dict(b) for b in data.get("backups", [])),
        )
