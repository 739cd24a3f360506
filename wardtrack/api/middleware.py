"""Middleware and exception handlers for the ward API.

Domain errors raised by the record service are mapped to status codes here;
anything else that escapes a route becomes a plain 500.
"""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from wardtrack.domain.ports import (
    ConflictError,
    DependencyError,
    NotFoundError,
    RecordError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; RecordError itself falls through to 503
ERROR_STATUS = [
    (ValidationError, 400, "Bad Request"),
    (NotFoundError, 404, "Not Found"),
    (ConflictError, 409, "Conflict"),
    (DependencyError, 503, "Service Unavailable"),
]


def error_response(status_code: int, error: str, detail=None) -> JSONResponse:
    content = {"error": error}
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            f"{request.method} {request.url.path} - "
            f"Client: {request.client.host if request.client else 'unknown'}"
        )

        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"

        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns exceptions no handler claimed into a 500 response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled error on {request.method} {request.url.path}: {str(e)}",
                exc_info=True
            )
            return error_response(500, "Internal Server Error")


async def record_error_handler(request: Request, exc: RecordError) -> JSONResponse:
    status_code, error = 503, "Service Unavailable"
    for error_cls, code, label in ERROR_STATUS:
        if isinstance(exc, error_cls):
            status_code, error = code, label
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {str(exc)}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status_code}): {str(exc)}")
    return error_response(status_code, error, str(exc))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    # A path segment outside the MRN shape means no route matched
    if errors and all(tuple(err.get("loc", ()))[:1] == ("path",) for err in errors):
        return error_response(404, "Not Found")

    fields = [
        ".".join(str(part) for part in err.get("loc", ()) if part != "body") or "body"
        for err in errors
    ]
    return error_response(400, "Bad Request", f"Invalid request: {', '.join(fields)}")



async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown routes and wrong methods on known paths both read as Not Found
    if exc.status_code in (404, 405):
        return error_response(404, "Not Found")
    return error_response(exc.status_code, str(exc.detail))


def setup_middleware(app: FastAPI) -> None:
    """Register exception handlers and middleware.

    Middleware Order:
        1. ErrorHandlingMiddleware - Handles unclaimed errors
        2. LoggingMiddleware - Logs requests/responses
    """
    app.add_exception_handler(RecordError, record_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
