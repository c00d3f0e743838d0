"""Marketplace exceptions with error codes and HTTP categories."""

from typing import Any, Optional


class MarketplaceException(Exception):
    """Base exception for the farmer marketplace services."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_000",
        category: str = "system",
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}
        super().__init__(message)


class TransientError(MarketplaceException):
    """Retryable errors: network timeouts, temporary unavailability."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_001",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "transient", details)


class PermanentError(MarketplaceException):
    """Non-retryable errors: invalid input, unknown resources."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_002",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, "permanent", details)


class ValidationError(PermanentError):
    """Validation failures - 400 Bad Request."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_400",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds available stock - 400."""

    def __init__(
        self,
        message: str = "Requested quantity exceeds available stock",
        code: str = "MKT_401",
        available: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        d = details or {}
        if available is not None:
            d["available"] = available
        super().__init__(message, code, d)


class SignatureInvalidError(ValidationError):
    """Webhook signature or payload rejected - 400."""

    def __init__(
        self,
        message: str = "Invalid webhook signature",
        code: str = "MKT_402",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class NotFoundError(PermanentError):
    """Resource not found - 404."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_404",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ForbiddenError(PermanentError):
    """Authorization failures and disabled endpoints - 403."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_403",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ConflictError(PermanentError):
    """Business rule violations - 409."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_409",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class UpstreamError(TransientError):
    """Payment gateway or store unreachable or failing - 502."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_502",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)


class ServiceUnavailableError(TransientError):
    """Dependency not configured or temporarily unavailable - 503."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_503",
        retry_after: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        d = details or {}
        if retry_after is not None:
            d["retry_after"] = retry_after
        super().__init__(message, code, d)


class NotificationError(TransientError):
    """Email delivery failed. Logged only, never returned to callers."""

    def __init__(
        self,
        message: str,
        code: str = "MKT_520",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
