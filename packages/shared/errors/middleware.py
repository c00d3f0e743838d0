"""FastAPI error handling middleware for marketplace services."""

import logging
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .models import create_error_response
from .exceptions import (
    MarketplaceException,
    ValidationError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    UpstreamError,
    ServiceUnavailableError,
)

logger = logging.getLogger(__name__)

EXCEPTION_STATUS_MAP = {
    ValidationError: 400,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    UpstreamError: 502,
    ServiceUnavailableError: 503,
}


def status_for(exc: MarketplaceException) -> int:
    """Resolve HTTP status from the closest mapped exception class."""
    for cls in type(exc).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return 500


def get_request_id(request: Request) -> str:
    """Get or create request ID for correlation."""
    request_id = request.headers.get("X-Request-ID") or getattr(
        request.state, "request_id", None
    )
    if not request_id:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """Add request ID to all requests for tracing."""
    request_id = get_request_id(request)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def marketplace_exception_handler(request: Request, exc: MarketplaceException) -> JSONResponse:
    """Handle marketplace exceptions with standardized error format."""
    request_id = get_request_id(request)
    status = status_for(exc)

    error_response = create_error_response(
        code=exc.code,
        message=exc.message,
        category=exc.category,
        details=exc.details,
        request_id=request_id,
    )

    logger.warning(
        "Marketplace exception",
        extra={
            "request_id": request_id,
            "context": {
                "error_code": exc.code,
                "message": exc.message,
                "category": exc.category,
                "path": request.url.path,
                **exc.details,
            },
        },
    )

    return JSONResponse(
        status_code=status,
        content=error_response.model_dump(exclude_none=True),
        headers={
            "X-Request-ID": request_id,
            **(_retry_headers(exc) if exc.details else {}),
        },
    )


def _retry_headers(exc: MarketplaceException) -> dict:
    """Add Retry-After header if applicable."""
    headers = {}
    if retry_after := exc.details.get("retry_after"):
        headers["Retry-After"] = str(retry_after)
    return headers


def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Flatten FastAPI body/query validation errors into the error payload."""
    request_id = get_request_id(request)
    problems = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    ]
    error_response = create_error_response(
        code="MKT_422",
        message="; ".join(problems) or "Invalid request",
        category="permanent",
        request_id=request_id,
    )
    return JSONResponse(
        status_code=422,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )


def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions - return 500 with generic message."""
    request_id = get_request_id(request)

    error_response = create_error_response(
        code="MKT_500",
        message="An unexpected error occurred. Please try again later.",
        category="system",
        request_id=request_id,
    )

    logger.exception(
        "Unhandled exception",
        extra={"request_id": request_id},
        exc_info=exc,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
        headers={"X-Request-ID": request_id},
    )
