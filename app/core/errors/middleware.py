"""
FastAPI exception handlers.

MentorError is looked up in the registry and rendered as the public
``{"code", "message"}`` body. Storage details stay in the logs: every
repository/gateway failure reaches the caller as INTERNAL_ERROR.
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import InvalidRequest, MentorError
from app.core.errors.registry import error_registry

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_CODE = "MNT-SYS-001"


async def mentor_error_handler(request: Request, exc: MentorError) -> JSONResponse:
    """Convert MentorError into a structured JSON response."""
    return _render(request, exc)


def _render(request: Request, exc: MentorError, message: str | None = None) -> JSONResponse:
    request.state.error_code = exc.code
    entry = error_registry.get(exc.code)

    if entry is None:
        logger.error(
            "unregistered_error_code",
            extra={"error.code": exc.code, "error.message": exc.detail},
        )
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "An unexpected error occurred."},
        )

    log_extra = {
        "error.code": exc.code,
        "error.kind": type(exc).__name__,
        "error.message": exc.detail,
        "error.retryable": entry.retryable,
        "http.path": request.url.path,
        **{f"error.ctx.{k}": v for k, v in exc.context.items()},
    }
    _severity_to_log_fn(entry.severity)(entry.title, extra=log_extra)

    return JSONResponse(
        status_code=entry.http_status,
        content={"code": entry.public_code, "message": message or entry.safe_message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render pydantic validation failures as INVALID_REQUEST naming the bad fields."""
    fields = []
    for err in exc.errors():
        name = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        if name and name not in fields:
            fields.append(name)

    message = f"invalid fields: {', '.join(fields)}" if fields else None
    return _render(request, InvalidRequest(detail=message, context={"fields": fields}), message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    request.state.error_code = UNEXPECTED_ERROR_CODE
    logger.exception("unhandled_error", extra={"http.path": request.url.path})
    entry = error_registry.get(UNEXPECTED_ERROR_CODE)
    message = entry.safe_message if entry else "An unexpected error occurred."
    return JSONResponse(status_code=500, content={"code": "INTERNAL_ERROR", "message": message})


def _severity_to_log_fn(severity: str):
    """Map registry severity to logger method."""
    return {
        "DEBUG": logger.debug,
        "INFO": logger.info,
        "WARN": logger.warning,
        "ERROR": logger.error,
        "CRITICAL": logger.critical,
    }.get(severity, logger.error)
