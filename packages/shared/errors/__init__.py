"""Standardized error handling for marketplace services."""

from .models import ErrorResponse, create_error_response
from .exceptions import (
    MarketplaceException,
    TransientError,
    PermanentError,
    ValidationError,
    InsufficientStockError,
    SignatureInvalidError,
    NotFoundError,
    ForbiddenError,
    ConflictError,
    UpstreamError,
    ServiceUnavailableError,
    NotificationError,
)

__all__ = [
    "ErrorResponse",
    "create_error_response",
    "MarketplaceException",
    "TransientError",
    "PermanentError",
    "ValidationError",
    "InsufficientStockError",
    "SignatureInvalidError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "UpstreamError",
    "ServiceUnavailableError",
    "NotificationError",
]
