"""Response hardening middleware.

The gateway does not authenticate its caller; it only keeps provider
secrets on the server side and tags every response for tracing.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request

access_logger = logging.getLogger("gateway.access")


async def add_security_headers(request: Request, call_next):
    """Add security and tracing headers to all responses."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    started = time.perf_counter()

    response = await call_next(request)

    # Security headers
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["X-Request-ID"] = request_id

    # Token responses must never be cached; streams set their own policy
    if request.url.path.startswith("/get-azure-token"):
        response.headers["Cache-Control"] = "no-store, max-age=0"

    access_logger.info(
        "%s %s -> %d (%.0fms) [%s]",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request_id,
    )
    return response
