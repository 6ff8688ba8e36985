"""
PageHost — API Error Rendering
===============================
Turns every failure into an explicit ``{"success": false, ...}`` body so the
caller can tell that nothing changed.

- ``PageHostError`` subclasses render with their own status and error code.
- Request validation errors render as 422 ``INVALID_REQUEST``.
- Anything else is logged with its traceback and rendered as 500
  ``INTERNAL_ERROR``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pagehost.core.exceptions import PageHostError
from pagehost.core.logging import get_logger

logger = get_logger(__name__)


def failure_body(message: str, error_code: str) -> dict[str, object]:
    return {"success": False, "error": message, "error_code": error_code}


async def pagehost_error_handler(request: Request, exc: PageHostError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    context = {"artifact_id": exc.artifact_id} if exc.artifact_id else {}
    log(
        "request.failed",
        path=request.url.path,
        method=request.method,
        error_code=exc.error_code,
        severity=exc.severity.value,
        error=exc.message,
        **context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=failure_body(exc.message, exc.error_code),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.info("request.invalid", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=422,
        content=failure_body(str(message), "INVALID_REQUEST"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "request.crashed",
        path=request.url.path,
        method=request.method,
        error_type=exc.__class__.__name__,
    )
    return JSONResponse(
        status_code=500,
        content=failure_body("Internal server error", "INTERNAL_ERROR"),
    )


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(PageHostError, pagehost_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)
    application.add_exception_handler(Exception, unhandled_error_handler)
