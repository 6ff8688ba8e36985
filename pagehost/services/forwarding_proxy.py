"""
PageHost — Forwarding Proxy
============================
Stateless one-shot relay for outbound requests issued by hosted pages.

The egress-interception script served with every page reroutes
cross-origin ``fetch`` calls to ``/proxy/<encoded url>``. This module
replays such a call against the real target and hands back the upstream
status, headers and body.

Relay rules:
- The target must start with ``http://`` or ``https://``. Anything else is
  rejected before any network activity.
- Request headers that describe our own transport or reveal the browser
  presentation (host, connection, content-length, user-agent, origin,
  referer) are dropped. ``accept-encoding`` is dropped too, so httpx
  advertises only the content codings it can decode.
- Non-GET/HEAD bodies are forwarded as the original bytes with the client's
  own content-type.
- Exactly one upstream call, bounded by a timeout, no redirects followed,
  no retries.
- JSON responses are parsed and re-serialized as UTF-8 (the relayed
  content-type says so), everything else is decoded as text. Undecodable
  bodies become a fixed placeholder.
- Upstream framing headers (content-encoding, content-length,
  transfer-encoding) are not copied back.

Usage:
    proxy = ForwardingProxy(timeout=30.0)
    result = await proxy.forward("GET", "https://api.example.com/x", headers, None)
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from pagehost.core.exceptions import InvalidTargetError, ProxyFailureError
from pagehost.core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_SCHEMES = ("http://", "https://")

STRIPPED_REQUEST_HEADERS = frozenset(
    {
        "host",
        "connection",
        "content-length",
        "user-agent",
        "origin",
        "referer",
        "accept-encoding",
    }
)
STRIPPED_RESPONSE_HEADERS = frozenset(
    {"content-encoding", "content-length", "transfer-encoding"}
)
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

DECODE_ERROR_PLACEHOLDER = "[pagehost] upstream response could not be decoded"

HeaderInput = Mapping[str, str] | Iterable[tuple[str, str]]


@dataclass(frozen=True)
class ProxyResult:
    """Upstream response, ready to relay to the browser."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    content: Any = None  # decoded JSON or text, as relayed


# ── Pure helpers ────────────────────────────────────────────────────────


def validate_target(target_url: str) -> httpx.URL:
    """
    Return the parsed target or raise ``InvalidTargetError``.

    Protocol-relative, relative and hostless URLs are rejected, not guessed.
    """
    if not target_url or not target_url.startswith(ALLOWED_SCHEMES):
        raise InvalidTargetError(
            "Invalid URL, it must start with http:// or https://"
        )
    try:
        url = httpx.URL(target_url)
    except httpx.InvalidURL as exc:
        raise InvalidTargetError(f"Invalid URL: {exc}") from exc
    if not url.host:
        raise InvalidTargetError("Invalid URL, no host given")
    return url


def filter_request_headers(headers: HeaderInput) -> list[tuple[str, str]]:
    """Drop hop-by-hop and identity headers, keep everything else in order."""
    items = headers.items() if isinstance(headers, Mapping) else headers
    return [
        (name, value)
        for name, value in items
        if name.lower() not in STRIPPED_REQUEST_HEADERS
    ]


def _is_json(content_type: str) -> bool:
    media = content_type.split(";", 1)[0].strip().lower()
    return media == "application/json" or media.endswith("+json")


def decode_response(response: httpx.Response) -> tuple[Any, bytes, str | None]:
    """
    Decode an upstream body as JSON or text.

    Returns ``(content, body_bytes, content_type)``. ``content_type`` is set
    only when the body was re-serialized and the upstream header no longer
    describes it. JSON failure falls back to text; text failure falls back
    to ``DECODE_ERROR_PLACEHOLDER``.
    """
    content_type = response.headers.get("content-type", "")
    if _is_json(content_type):
        try:
            data = json.loads(response.text)
        except ValueError:
            logger.debug("proxy.json_decode_failed", content_type=content_type)
        else:
            media = content_type.split(";", 1)[0].strip()
            return (
                data,
                json.dumps(data, ensure_ascii=False).encode("utf-8"),
                f"{media}; charset=utf-8",
            )

    try:
        text = response.text
        return text, text.encode(response.encoding or "utf-8", errors="replace"), None
    except (UnicodeError, LookupError):
        logger.warning("proxy.text_decode_failed", content_type=content_type)
        return (
            DECODE_ERROR_PLACEHOLDER,
            DECODE_ERROR_PLACEHOLDER.encode("utf-8"),
            "text/plain; charset=utf-8",
        )


def filter_response_headers(
    headers: httpx.Headers, content_type: str | None = None
) -> list[tuple[str, str]]:
    """Drop framing headers; replace content-type when the body was re-encoded."""
    kept = [
        (name, value)
        for name, value in headers.multi_items()
        if name.lower() not in STRIPPED_RESPONSE_HEADERS
        and not (content_type and name.lower() == "content-type")
    ]
    if content_type:
        kept.append(("content-type", content_type))
    return kept


# ── Proxy ───────────────────────────────────────────────────────────────


class ForwardingProxy:
    """
    Replays one outbound request per call.

    ``transport`` is passed straight to ``httpx.AsyncClient``; tests supply
    an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    async def forward(
        self,
        method: str,
        target_url: str,
        headers: HeaderInput,
        body: bytes | None = None,
    ) -> ProxyResult:
        """
        Relay the request and return the upstream response.

        Raises:
            InvalidTargetError: target is not an absolute http(s) URL.
            ProxyFailureError: DNS, connection, timeout or protocol failure.
        """
        url = validate_target(target_url)
        method = method.upper()
        forwarded_headers = filter_request_headers(headers)
        content = None if method in BODYLESS_METHODS else (body or b"")

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=forwarded_headers,
                    content=content,
                )
        except httpx.HTTPError as exc:
            logger.warning(
                "proxy.upstream_failed",
                method=method,
                target_host=url.host,
                error=str(exc) or exc.__class__.__name__,
            )
            raise ProxyFailureError(
                f"Upstream request failed: {str(exc) or exc.__class__.__name__}"
            ) from exc

        decoded, payload, content_type = decode_response(response)
        logger.info(
            "proxy.forwarded",
            method=method,
            target_host=url.host,
            status=response.status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return ProxyResult(
            status_code=response.status_code,
            headers=filter_response_headers(response.headers, content_type),
            body=payload,
            content=decoded,
        )
