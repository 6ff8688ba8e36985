"""
PageHost — Proxy API Tests
===========================
End-to-end relay through ``/proxy/{encoded target}`` with a mocked upstream.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
import pytest

from pagehost.api.deps import get_forwarding_proxy
from pagehost.services.forwarding_proxy import ForwardingProxy


def _proxy_path(target: str) -> str:
    return "/proxy/" + quote(target, safe="")


@pytest.fixture
def upstream_requests(test_app):
    """Route the app's proxy through a mock upstream and collect its requests."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.host == "down.example.com":
            raise httpx.ConnectError("connection refused")
        return httpx.Response(
            201,
            json={"echo": request.content.decode("utf-8")},
            headers={"X-Upstream": "1"},
        )

    test_app.dependency_overrides[get_forwarding_proxy] = lambda: ForwardingProxy(
        timeout=5.0, transport=httpx.MockTransport(handler)
    )
    return seen


@pytest.mark.asyncio
async def test_proxy_relays_request_and_response(client, upstream_requests):
    resp = await client.post(
        _proxy_path("https://api.example.com/items?limit=1"),
        content=b'{"a": 1}',
        headers={
            "Content-Type": "application/json",
            "Origin": "http://test",
            "Referer": "http://test/view/abc",
            "X-Trace": "t-1",
        },
    )

    assert resp.status_code == 201
    assert resp.json() == {"echo": '{"a": 1}'}
    assert resp.headers["x-upstream"] == "1"
    assert "X-Correlation-ID" in resp.headers

    sent = upstream_requests[0]
    assert sent.method == "POST"
    assert str(sent.url) == "https://api.example.com/items?limit=1"
    assert sent.content == b'{"a": 1}'
    assert sent.headers["x-trace"] == "t-1"
    assert "origin" not in sent.headers
    assert "referer" not in sent.headers


@pytest.mark.asyncio
async def test_proxy_rejects_relative_target(client, upstream_requests):
    resp = await client.get(_proxy_path("/api/items"))

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_TARGET"
    assert upstream_requests == []


@pytest.mark.asyncio
async def test_proxy_upstream_failure_is_500(client, upstream_requests):
    resp = await client.get(_proxy_path("https://down.example.com/"))

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert body["error_code"] == "PROXY_FAILURE"
