"""
PageHost — Content Server
==========================
Serves a hosted service's current revision with the egress-interception
script injected.

Injection is textual: the snippet is inserted immediately before the first
``</head>`` (case-insensitive), or prepended when the document has none.
The document is never parsed, so malformed markup and arbitrary bytes pass
through unharmed.
"""

from __future__ import annotations

import mimetypes
import re
from dataclasses import dataclass
from pathlib import PurePath

from pagehost.catalog.store import ArtifactCatalog
from pagehost.core.logging import get_logger
from pagehost.storage.blob_store import BlobStore

logger = get_logger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
HTML_SUFFIXES = frozenset({".html", ".htm"})

_HEAD_CLOSE = re.compile(rb"</head>", re.IGNORECASE)

# Reroutes cross-origin fetch() calls through the same-origin /proxy/ endpoint.
EGRESS_INTERCEPTOR_SCRIPT = """<script data-pagehost-egress="1">
(function () {
    'use strict';
    if (window.__pagehostEgress) { return; }
    window.__pagehostEgress = true;

    var originalFetch = window.fetch;

    function relay(self, proxyUrl, input, init) {
        if (!(input instanceof Request)) {
            return originalFetch.call(self, proxyUrl, init);
        }
        var method = (init && init.method) || input.method;
        var pending = /^(GET|HEAD)$/i.test(method)
            ? Promise.resolve(undefined)
            : input.clone().arrayBuffer();
        return pending.then(function (body) {
            var options = {
                method: input.method,
                headers: input.headers,
                credentials: input.credentials,
                cache: input.cache,
                redirect: input.redirect,
                signal: input.signal
            };
            if (body !== undefined) { options.body = body; }
            return originalFetch.call(self, proxyUrl, Object.assign(options, init || {}));
        });
    }

    window.fetch = function (input, init) {
        var rawUrl = (input instanceof Request) ? input.url : String(input);
        var target;
        try {
            target = new URL(rawUrl, window.location.href);
        } catch (err) {
            return originalFetch.apply(this, arguments);
        }
        if (target.origin === window.location.origin) {
            return originalFetch.apply(this, arguments);
        }
        var proxyUrl = '/proxy/' + encodeURIComponent(target.href);
        return relay(this, proxyUrl, input, init).then(function (response) {
            response._corsProxy = true;
            response._originalUrl = target.href;
            return response;
        });
    };

    Object.setPrototypeOf(window.fetch, originalFetch);
    Object.defineProperty(window.fetch, 'name', { value: 'fetch' });
})();
</script>"""

_SNIPPET_BYTES = EGRESS_INTERCEPTOR_SCRIPT.encode("utf-8")


@dataclass(frozen=True)
class ServedContent:
    """Bytes ready to send plus their media type."""

    body: bytes
    media_type: str


def inject_egress_script(document: bytes) -> bytes:
    """Insert the interceptor before the first ``</head>``, else prepend it."""
    match = _HEAD_CLOSE.search(document)
    if match is None:
        return _SNIPPET_BYTES + b"\n" + document
    at = match.start()
    return document[:at] + _SNIPPET_BYTES + b"\n" + document[at:]


def is_html_ref(content_ref: str) -> bool:
    return PurePath(content_ref).suffix.lower() in HTML_SUFFIXES


class ContentServer:
    """Loads current content by service id and prepares it for the browser."""

    def __init__(self, catalog: ArtifactCatalog, blobs: BlobStore) -> None:
        self._catalog = catalog
        self._blobs = blobs

    async def serve(self, artifact_id: str) -> ServedContent:
        """
        Return the current revision of ``artifact_id``.

        Raises ``ArtifactNotFoundError`` if the service or its blob is missing.
        """
        artifact = self._catalog.require(artifact_id)
        raw = await self._blobs.read(artifact.content_ref)

        if is_html_ref(artifact.content_ref):
            body = inject_egress_script(raw)
            media_type = HTML_CONTENT_TYPE
        else:
            body = raw
            guessed, _ = mimetypes.guess_type(artifact.content_ref)
            media_type = guessed or "application/octet-stream"

        logger.debug(
            "content.served",
            artifact_id=artifact_id,
            version=artifact.version,
            size=len(body),
        )
        return ServedContent(body=body, media_type=media_type)
