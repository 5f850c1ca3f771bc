"""Every failure leaves the API as an ErrorResponse with an X-Request-Id header."""

from __future__ import annotations

import logging
import uuid
from http import HTTPStatus

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backlog_tracker.models import ErrorDetail, ErrorResponse
from backlog_tracker.services.errors import (
    ConflictError,
    NotFoundError,
    ServiceError,
    ServiceValidationError,
    SourceUnavailableError,
)
from backlog_tracker.utils import format_datetime, utcnow

logger = logging.getLogger("backlog_tracker.exception_handlers")

REQUEST_ID_HEADER = "X-Request-Id"

_ERROR_CODES = {
    HTTPStatus.BAD_REQUEST: "validation_error",
    HTTPStatus.NOT_FOUND: "not_found",
    HTTPStatus.METHOD_NOT_ALLOWED: "method_not_allowed",
    HTTPStatus.CONFLICT: "conflict",
    HTTPStatus.UNPROCESSABLE_ENTITY: "validation_error",
    HTTPStatus.SERVICE_UNAVAILABLE: "source_unavailable",
}

# First isinstance match wins
_SERVICE_STATUS: tuple[tuple[type[ServiceError], HTTPStatus], ...] = (
    (NotFoundError, HTTPStatus.NOT_FOUND),
    (ServiceValidationError, HTTPStatus.BAD_REQUEST),
    (ConflictError, HTTPStatus.CONFLICT),
    (SourceUnavailableError, HTTPStatus.SERVICE_UNAVAILABLE),
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex


def error_response(
    request: Request,
    status_code: int,
    message: str,
    *,
    error: str | None = None,
    details: list[ErrorDetail] | None = None,
) -> JSONResponse:
    request_id = _request_id(request)
    body = ErrorResponse(
        error=error or _ERROR_CODES.get(status_code, "error"),
        message=message,
        details=details,
        timestamp=format_datetime(utcnow()),
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={REQUEST_ID_HEADER: request_id},
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(request, exc.status_code, message)


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    status = next(
        (code for error_type, code in _SERVICE_STATUS if isinstance(exc, error_type)), None
    )
    if status is None:
        return await handle_unexpected_error(request, exc)
    if status >= 500:
        logger.warning("Request %s failed: %s", request.url.path, exc)
    return error_response(request, status, str(exc))


def _validation_details(exc: RequestValidationError) -> list[ErrorDetail]:
    details = []
    for e in exc.errors():
        # Drop the leading 'body'/'query'/'path' for readability
        parts = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")]
        details.append(
            ErrorDetail(field=".".join(parts) or "request", message=e.get("msg", "Invalid value"))
        )
    return details


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(
        request,
        HTTPStatus.UNPROCESSABLE_ENTITY,
        "Invalid request data",
        details=_validation_details(exc) or None,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return error_response(
        request,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
        error="internal_error",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    # Reuse the caller's trace id when one is sent
    request.state.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    response = await call_next(request)
    response.headers.setdefault(REQUEST_ID_HEADER, request.state.request_id)
    return response
