"""
Error envelope and exception handlers for the HTTP adapter.

Every failure leaves the API as an `ErrorResponse`; engine errors are mapped
by type, most specific first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from printshop.core.errors import (
    DeductionError,
    NotFoundError,
    OrderEngineError,
    ValidationError,
)
from printshop.schemas.common import ErrorInfo, ErrorResponse

logger = logging.getLogger(__name__)

ENGINE_ERROR_MAP: Dict[Type[OrderEngineError], Tuple[int, str]] = {
    NotFoundError: (404, "not_found"),
    ValidationError: (400, "invalid_request"),
    DeductionError: (500, "deduction_failed"),
}


# PUBLIC_INTERFACE
def error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Render the standard error envelope for the current request."""
    body = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _engine_status(exc: OrderEngineError) -> Tuple[int, str]:
    for error_cls, mapped in ENGINE_ERROR_MAP.items():
        if isinstance(exc, error_cls):
            return mapped
    return 500, "consistency_error"


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, str):
        return error_response(request, exc.status_code, "http_error", exc.detail)
    return error_response(request, exc.status_code, "http_error", "HTTP Error", details=exc.detail)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request, 422, "validation_error", "Request validation failed", details=exc.errors()
    )


async def handle_engine_error(request: Request, exc: OrderEngineError) -> JSONResponse:
    """Missing entities are 404, rejected input 400, every other engine failure 500."""
    status_code, error_type = _engine_status(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    details = exc.errors if isinstance(exc, DeductionError) else None
    return error_response(request, status_code, error_type, str(exc), details=details)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, never send it to the client."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, 500, "internal_error", "An unexpected error occurred")


# PUBLIC_INTERFACE
def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on `app`."""
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(OrderEngineError, handle_engine_error)
    app.add_exception_handler(Exception, handle_unexpected)
