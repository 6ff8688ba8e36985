"""
PageHost — View Route
======================
Serves a hosted service with the egress-interception script injected.

Usage:
    GET /view/{artifact_id}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from pagehost.api.deps import bind_artifact_context, get_content_server
from pagehost.services.content_server import ContentServer

router = APIRouter(tags=["view"])


@router.get(
    "/view/{artifact_id}",
    dependencies=[Depends(bind_artifact_context)],
    response_class=Response,
    summary="View a hosted service",
)
async def view_service(
    artifact_id: str,
    server: ContentServer = Depends(get_content_server),
) -> Response:
    served = await server.serve(artifact_id)
    return Response(content=served.body, media_type=served.media_type)
