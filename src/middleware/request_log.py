"""Request logging middleware.

Tags every request with an ``X-Request-ID`` (echoing the client's when
supplied) and logs method, path, status and duration.  Responses carry
medication data, so they are marked ``Cache-Control: no-store``.
"""

from __future__ import annotations

import logging
import secrets
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("dosekeeper.http")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or secrets.token_hex(8)
        request.state.request_id = request_id
        started = time.monotonic()

        response = await call_next(request)

        elapsed_ms = (time.monotonic() - started) * 1000.0
        logger.info(
            "%s %s → %d (%.1fms) [%s]",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers.setdefault("Cache-Control", "no-store")
        return response
