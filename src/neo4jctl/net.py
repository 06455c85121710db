"""Small urllib helpers shared by the network-facing providers."""
from __future__ import annotations

import os
import ssl
import urllib.request
from collections.abc import Mapping
from http.client import HTTPResponse
from pathlib import Path

USER_AGENT = "neo4jctl"


def ssl_context() -> ssl.SSLContext:
    """Return a TLS context, honouring ``SSL_CERT_FILE`` when it points at a file."""
    override = os.environ.get("SSL_CERT_FILE")
    if override and Path(override).is_file():
        return ssl.create_default_context(cafile=override)
    return ssl.create_default_context()


def build_request(
    url: str,
    *,
    method: str = "GET",
    data: bytes | None = None,
    headers: Mapping[str, str] | None = None,
) -> urllib.request.Request:
    """Return a :class:`urllib.request.Request` with the default headers applied."""
    merged = {"User-Agent": USER_AGENT}
    if headers:
        merged.update(headers)
    return urllib.request.Request(url, data=data, headers=merged, method=method)


def open_url(request: urllib.request.Request, *, timeout: float) -> HTTPResponse:
    """Open *request*; HTTP error statuses raise ``urllib.error.HTTPError``."""
    context = ssl_context() if request.full_url.startswith("https://") else None
    return urllib.request.urlopen(request, timeout=timeout, context=context)  # noqa: S310


__all__ = ["USER_AGENT", "build_request", "open_url", "ssl_context"]
