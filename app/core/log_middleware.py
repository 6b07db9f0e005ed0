"""
Request logging middleware.

Binds request_id / correlation_id into contextvars for the duration of a
request, so pipeline and gateway log lines carry them, and writes one
``request_completed`` line per request. Failed requests also carry the
internal error code (MNT-...) that the exception handlers stored on
``request.state``; the client only ever sees the public code.
"""
from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.structured_logging import correlation_id_var, request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"


class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        # A caller without its own trace id gets the request id as correlation id
        corr_id = request.headers.get(CORRELATION_ID_HEADER) or req_id

        rid_token = request_id_var.set(req_id)
        cid_token = correlation_id_var.set(corr_id)
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            _log_completed(request, status_code, time.perf_counter() - start)
            request_id_var.reset(rid_token)
            correlation_id_var.reset(cid_token)

        response.headers[REQUEST_ID_HEADER] = req_id
        response.headers[CORRELATION_ID_HEADER] = corr_id
        return response


def _log_completed(request: Request, status_code: int, elapsed_s: float) -> None:
    extra = {
        "http.method": request.method,
        "http.path": request.url.path,
        "http.status_code": status_code,
        "duration_ms": round(elapsed_s * 1000, 2),
    }
    error_code = getattr(request.state, "error_code", None)
    if error_code:
        extra["error.code"] = error_code

    level = logging.WARNING if status_code >= 500 else logging.INFO
    logger.log(level, "request_completed", extra=extra)
