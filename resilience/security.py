"""
resilience.security — HTTP middleware for the resilience API.

Provides:
    - RequestIdMiddleware: X-Request-ID on every request/response, plus one
      structured JSON log line per request
    - SecurityHeadersMiddleware: hardened response headers and a
      Cache-Control policy split between static tables and live analyses
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("resilience.security")

# Static tables: identical for every caller until the next deploy.
STATIC_PATHS = frozenset(("/countries", "/disasters", "/rankings"))
NO_STORE_PATHS = frozenset(("/health",))


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log method, path, status and latency."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        started = time.monotonic()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        log_request(request, response.status_code, round((time.monotonic() - started) * 1000, 1))
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers. HSTS only when TLS terminates upstream (prod)."""

    def __init__(self, app: Any, *, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        path = request.url.path
        if path in NO_STORE_PATHS:
            response.headers["Cache-Control"] = "no-store"
        elif path in STATIC_PATHS:
            response.headers["Cache-Control"] = "public, max-age=300"
        else:
            # Country analyses depend on whatever the live sources returned.
            response.headers["Cache-Control"] = "no-cache"
        return response


def mask_ip(ip: str | None) -> str:
    """Keep the first two IPv4 octets or the first four IPv6 groups."""
    if not ip:
        return "unknown"
    if ":" in ip:
        return ":".join(ip.split(":")[:4]) + "::*"
    octets = ip.split(".")
    if len(octets) == 4:
        return f"{octets[0]}.{octets[1]}.*.*"
    return "unknown"


def log_request(request: Request, status_code: int, latency_ms: float) -> None:
    line = json.dumps({
        "event": "http_request",
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": latency_ms,
        "client_ip": mask_ip(request.client.host if request.client else None),
        "request_id": getattr(request.state, "request_id", "unknown"),
    })
    if status_code >= 500:
        logger.error(line)
    elif status_code >= 400:
        logger.warning(line)
    else:
        logger.info(line)
