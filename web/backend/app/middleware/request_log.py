"""Request logging middleware -- one log line per request.

Records method, path, status and latency. Nothing else about the request is
kept.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request

logger = logging.getLogger("bundle_builder.web")


async def log_requests(request: Request, call_next):
    """Log the outcome of every request, including ones that raised."""
    start = time.monotonic()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("%s %s -> error", request.method, request.url.path)
        raise
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s -> %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response
