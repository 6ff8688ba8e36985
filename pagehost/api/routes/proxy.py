"""
PageHost — Forwarding Proxy Route
==================================
Same-origin entry point for cross-origin requests issued by hosted pages.

The target URL is the single percent-encoded path component after
``/proxy/``. Method, headers and body are relayed from the incoming request.

Usage:
    ANY /proxy/{encoded target url}
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from pagehost.api.deps import get_forwarding_proxy
from pagehost.services.forwarding_proxy import BODYLESS_METHODS, ForwardingProxy

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route(
    "/proxy/{target:path}",
    methods=PROXY_METHODS,
    response_class=Response,
    summary="Relay a request to an external origin",
)
async def forward_request(
    target: str,
    request: Request,
    proxy: ForwardingProxy = Depends(get_forwarding_proxy),
) -> Response:
    body = None if request.method in BODYLESS_METHODS else await request.body()
    result = await proxy.forward(request.method, target, request.headers, body)

    response = Response(content=result.body, status_code=result.status_code)
    for name, value in result.headers:
        response.headers.append(name, value)
    return response
