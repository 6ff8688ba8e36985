"""
PageHost — Centralized Exception Taxonomy
==========================================
Category-based exception hierarchy with severity, error code and the HTTP
status the API layer renders for it.

Usage:
    from pagehost.core.exceptions import ArtifactNotFoundError

    raise ArtifactNotFoundError(
        "Service not found",
        artifact_id="3f2a...",
    )
"""

from __future__ import annotations

from enum import StrEnum


class ErrorSeverity(StrEnum):
    """
    Error severity levels for exception classification.

    LOW < MEDIUM < HIGH < CRITICAL
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PageHostError(Exception):
    """
    Base exception for all PageHost-specific errors.

    Every subclass provides:
    - severity: Classification for error handling/routing
    - error_code: Unique identifier for programmatic handling
    - status_code: HTTP status the API layer responds with
    - artifact_id: the service the failure concerns, when known
    """

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_code: str = "PAGEHOST_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        artifact_id: str | None = None,
    ) -> None:
        self.message = message
        self.artifact_id = artifact_id
        super().__init__(message)

    def __repr__(self) -> str:
        parts = [
            f"{self.__class__.__name__}(",
            f"error_code={self.error_code!r}, ",
            f"severity={self.severity.value!r}",
        ]
        if self.artifact_id:
            parts.append(f", artifact_id={self.artifact_id!r}")
        parts.append(")")
        return "".join(parts)


# ── Artifact Lifecycle Exceptions ─────────────────────────────────────────


class InvalidContentError(PageHostError):
    """Raised when an upload or replacement is not a single HTML document."""

    severity = ErrorSeverity.LOW
    error_code = "INVALID_CONTENT"
    status_code = 400


class ArtifactNotFoundError(PageHostError):
    """Raised when no service exists for the requested id, or its blob is gone."""

    severity = ErrorSeverity.LOW
    error_code = "NOT_FOUND"
    status_code = 404


class InvalidBackupIndexError(PageHostError):
    """Raised when a restore names a backup position outside the list."""

    severity = ErrorSeverity.LOW
    error_code = "INVALID_BACKUP_INDEX"
    status_code = 400


class InvalidNameError(PageHostError):
    """Raised when a display name is empty or too long."""

    severity = ErrorSeverity.LOW
    error_code = "INVALID_NAME"
    status_code = 400


# ── Forwarding Proxy Exceptions ───────────────────────────────────────────


class InvalidTargetError(PageHostError):
    """Raised when a proxy target is not an absolute http(s) URL."""

    severity = ErrorSeverity.LOW
    error_code = "INVALID_TARGET"
    status_code = 400


class ProxyFailureError(PageHostError):
    """Raised when the upstream call fails at the network or transport level."""

    severity = ErrorSeverity.MEDIUM
    error_code = "PROXY_FAILURE"
    status_code = 500


# ── Storage Exceptions ────────────────────────────────────────────────────


class StorageFailureError(PageHostError):
    """Raised when a blob or the catalog file cannot be read or written."""

    severity = ErrorSeverity.HIGH
    error_code = "STORAGE_FAILURE"
    status_code = 500
