"""
confstats.security — HTTP middleware for the dataset service.

Provides:
    - RequestIdMiddleware: X-Request-ID on every response + JSON request log
    - SecurityHeadersMiddleware: hardening headers and per-path Cache-Control
    - RequestSizeLimitMiddleware: rejects oversized headers (431) / bodies (413)
    - ETagMiddleware: weak ETag on 200 GET responses, 304 on If-None-Match
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("confstats.http")

# Probe endpoints are never cached and never tagged.
UNCACHED_PATHS = frozenset(("/health", "/ready"))

MAX_BODY_BYTES = 1024          # read-only API; any body is suspicious
MAX_HEADER_BYTES = 16_384


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------

class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or mint one, then log the request."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        started = time.monotonic()
        response = await call_next(request)
        latency_ms = round((time.monotonic() - started) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        log_request(request, response.status_code, latency_ms, request_id)
        return response


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add hardening headers and Cache-Control.

    Cache-Control:
      - /health, /ready     → no-store
      - /data/*, /views/*   → public, short TTL; datasets change only on deploy
      - anything else       → no-cache
    """

    def __init__(self, app: Any, *, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Cross-Origin-Resource-Policy"] = "same-site"
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        path = request.url.path
        if path in UNCACHED_PATHS:
            response.headers["Cache-Control"] = "no-store"
        elif response.status_code == 200 and path.startswith(("/data/", "/views/")):
            response.headers["Cache-Control"] = "public, max-age=60, stale-while-revalidate=300"
        else:
            response.headers["Cache-Control"] = "no-cache"
        return response


# ---------------------------------------------------------------------------
# Request size limit middleware
# ---------------------------------------------------------------------------

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with oversized headers (431) or bodies (413)."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        header_size = sum(len(k) + len(v) for k, v in request.headers.raw)
        if header_size > MAX_HEADER_BYTES:
            return Response(
                content='{"detail":"Request headers too large"}',
                status_code=431,
                media_type="application/json",
            )
        content_length = request.headers.get("content-length")
        if content_length is not None and content_length.isdigit():
            if int(content_length) > MAX_BODY_BYTES:
                return Response(
                    content='{"detail":"Request body too large"}',
                    status_code=413,
                    media_type="application/json",
                )
        return await call_next(request)


# ---------------------------------------------------------------------------
# ETag / conditional-GET middleware
# ---------------------------------------------------------------------------

class ETagMiddleware(BaseHTTPMiddleware):
    """Weak ETag over the body of successful GET responses.

    Dataset views are deterministic for a given deploy, so an unchanged
    body means an unchanged resource.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if request.method != "GET" or request.url.path in UNCACHED_PATHS:
            return await call_next(request)

        response = await call_next(request)
        if response.status_code != 200:
            return response

        chunks: list[bytes] = []
        async for chunk in response.body_iterator:  # type: ignore[union-attr]
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode())
        body = b"".join(chunks)

        etag = f'W/"{hashlib.md5(body, usedforsecurity=False).hexdigest()}"'  # noqa: S324
        candidates = {tag.strip() for tag in request.headers.get("if-none-match", "").split(",")}
        if etag in candidates:
            return Response(status_code=304, headers={"ETag": etag})

        headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
        headers["ETag"] = etag
        return Response(
            content=body,
            status_code=200,
            headers=headers,
            media_type=response.media_type,
        )


# ---------------------------------------------------------------------------
# Structured request logging
# ---------------------------------------------------------------------------

def mask_ip(ip: str | None) -> str:
    """Keep the first two IPv4 octets or the first four IPv6 groups."""
    if not ip:
        return "unknown"
    if ":" in ip:
        return ":".join(ip.split(":")[:4]) + "::*"
    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.*.*"
    return "unknown"


def log_request(
    request: Request,
    status_code: int,
    latency_ms: float,
    request_id: str,
) -> None:
    """One JSON line per request; level follows the status class."""
    line = json.dumps({
        "event": "http_request",
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": latency_ms,
        "client_ip": mask_ip(request.client.host if request.client else None),
        "request_id": request_id,
    })
    if status_code >= 500:
        logger.error(line)
    elif status_code >= 400:
        logger.warning(line)
    else:
        logger.info(line)
