"""
PageHost — Service Lifecycle Routes
====================================
Endpoints that drive the versioned-artifact lifecycle.

Usage:
    POST   /upload                          Upload one HTML document
    POST   /replace/{artifact_id}           Replace content, keep a backup
    DELETE /delete/{artifact_id}            Delete service and all revisions
    POST   /rename/{artifact_id}            Change the display name
    GET    /backups/{artifact_id}           List backups, most recent first
    POST   /restore/{artifact_id}/{index}   Promote a backup to current
    GET    /api/services                    List hosted services
    GET    /api/services/{artifact_id}      Service detail
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from starlette.datastructures import UploadFile

from pagehost.api.deps import bind_artifact_context, get_version_manager
from pagehost.catalog.models import Artifact
from pagehost.core.exceptions import InvalidContentError
from pagehost.core.logging import get_logger
from pagehost.services.versioning import UploadedDocument, VersionManager

logger = get_logger(__name__)

router = APIRouter(tags=["services"])


# ── Request / Response Schemas ──────────────────────────────────────────


class UploadResponse(BaseModel):
    success: bool = True
    id: str


class VersionResponse(BaseModel):
    """Returned by replace and restore."""

    success: bool = True
    version: int


class SuccessResponse(BaseModel):
    success: bool = True


class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_name: str | None = Field(None, alias="newName")


class RenameResponse(BaseModel):
    success: bool = True
    new_name: str = Field(serialization_alias="newName")


class BackupItem(BaseModel):
    version: int
    backed_up_at: str = Field(serialization_alias="backedUpAt")


class BackupListResponse(BaseModel):
    success: bool = True
    backups: list[BackupItem]
    current_version: int = Field(serialization_alias="currentVersion")


class ServiceSummary(BaseModel):
    """Catalog entry as shown to clients (no storage handles)."""

    id: str
    display_name: str = Field(serialization_alias="displayName")
    size: int
    uploaded_at: str = Field(serialization_alias="uploadedAt")
    version: int
    backup_count: int = Field(serialization_alias="backupCount")
    view_url: str = Field(serialization_alias="viewUrl")


class ServiceListResponse(BaseModel):
    success: bool = True
    services: list[ServiceSummary]


class ServiceDetailResponse(BaseModel):
    success: bool = True
    service: ServiceSummary


# ── Helpers ─────────────────────────────────────────────────────────────


def _to_summary(artifact: Artifact) -> ServiceSummary:
    return ServiceSummary(
        id=artifact.id,
        display_name=artifact.display_name,
        size=artifact.size,
        uploaded_at=artifact.uploaded_at,
        version=artifact.version,
        backup_count=len(artifact.backups),
        view_url=f"/view/{artifact.id}",
    )


# Multipart framing (boundaries, part headers, displayName) on top of the file.
FORM_OVERHEAD_BYTES = 64 * 1024


def _too_large(max_bytes: int) -> InvalidContentError:
    return InvalidContentError(f"Uploaded document exceeds the {max_bytes}-byte limit")


async def _read_single_document(
    request: Request, max_bytes: int
) -> tuple[UploadedDocument, str | None]:
    """
    Pull exactly one uploaded file out of a multipart form.

    Zero files or more than one file is rejected outright. An optional
    ``displayName`` text field is returned alongside. At most
    ``max_bytes + 1`` bytes of the file are read into memory, and a declared
    request body that cannot fit is refused before the form is parsed.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes + FORM_OVERHEAD_BYTES:
        raise _too_large(max_bytes)

    form = await request.form()
    try:
        files = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
        if not files:
            raise InvalidContentError("Please choose a file to upload")
        if len(files) > 1:
            raise InvalidContentError("Exactly one HTML file can be uploaded at a time")

        upload = files[0]
        content = await upload.read(max_bytes + 1)
        if len(content) > max_bytes:
            raise _too_large(max_bytes)
        display_name = form.get("displayName")
        return (
            UploadedDocument(
                content=content,
                filename=upload.filename,
                media_type=upload.content_type,
            ),
            display_name if isinstance(display_name, str) else None,
        )
    finally:
        await form.close()


# ── Endpoints ───────────────────────────────────────────────────────────


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Upload a new HTML service",
)
async def upload_service(
    request: Request,
    manager: VersionManager = Depends(get_version_manager),
) -> UploadResponse:
    document, display_name = await _read_single_document(
        request, manager.max_upload_bytes
    )
    artifact = await manager.create(document, display_name=display_name)
    return UploadResponse(id=artifact.id)


@router.post(
    "/replace/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=VersionResponse,
    summary="Replace a service's content",
)
async def replace_service(
    artifact_id: str,
    request: Request,
    manager: VersionManager = Depends(get_version_manager),
) -> VersionResponse:
    document, _ = await _read_single_document(request, manager.max_upload_bytes)
    version = await manager.replace(artifact_id, document)
    return VersionResponse(version=version)


@router.delete(
    "/delete/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=SuccessResponse,
    summary="Delete a service and every stored revision",
)
async def delete_service(
    artifact_id: str,
    manager: VersionManager = Depends(get_version_manager),
) -> SuccessResponse:
    await manager.delete(artifact_id)
    return SuccessResponse()


@router.post(
    "/rename/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=RenameResponse,
    summary="Rename a service",
)
async def rename_service(
    artifact_id: str,
    body: RenameRequest,
    manager: VersionManager = Depends(get_version_manager),
) -> RenameResponse:
    name = await manager.rename(artifact_id, body.new_name)
    return RenameResponse(new_name=name)


@router.get(
    "/backups/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=BackupListResponse,
    summary="List a service's backups",
)
async def list_backups(
    artifact_id: str,
    manager: VersionManager = Depends(get_version_manager),
) -> BackupListResponse:
    listing = manager.list_backups(artifact_id)
    return BackupListResponse(
        backups=[
            BackupItem(version=b.version, backed_up_at=b.backed_up_at)
            for b in listing.backups
        ],
        current_version=listing.current_version,
    )


@router.post(
    "/restore/{artifact_id}/{backup_index}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=VersionResponse,
    summary="Restore a backup as the current version",
)
async def restore_backup(
    artifact_id: str,
    backup_index: int,
    manager: VersionManager = Depends(get_version_manager),
) -> VersionResponse:
    version = await manager.restore(artifact_id, backup_index)
    return VersionResponse(version=version)


@router.get(
    "/api/services",
    response_model=ServiceListResponse,
    summary="List hosted services",
)
async def list_services(
    manager: VersionManager = Depends(get_version_manager),
) -> ServiceListResponse:
    return ServiceListResponse(services=[_to_summary(a) for a in manager.list()])


@router.get(
    "/api/services/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_model=ServiceDetailResponse,
    summary="Get service detail",
)
async def get_service(
    artifact_id: str,
    manager: VersionManager = Depends(get_version_manager),
) -> ServiceDetailResponse:
    return ServiceDetailResponse(service=_to_summary(manager.get(artifact_id)))
