"""
Global middleware.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def register_middleware(app: FastAPI) -> None:
    """Attach request-id propagation and timing to every response."""

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        if response.status_code >= 500:
            logger.warning(
                "%s %s -> %d in %.3fs [%s]",
                request.method, request.url.path, response.status_code, elapsed, request_id,
            )
        else:
            logger.debug(
                "%s %s -> %d in %.3fs [%s]",
                request.method, request.url.path, response.status_code, elapsed, request_id,
            )
        return response
