"""Error response model shared by all marketplace endpoints."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standardized error response: ``{"error": "<message>", ...}``."""

    error: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Error code in format MKT_NUMBER")
    category: str = Field(
        default="system",
        description="Error category: transient, permanent, system",
    )
    details: Optional[dict[str, Any]] = Field(
        default=None,
        description="Additional context (product_id, session_id, available, etc.)",
    )
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Error timestamp in ISO 8601",
    )


def create_error_response(
    code: str,
    message: str,
    category: str = "system",
    details: Optional[dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> ErrorResponse:
    """Create standardized error response."""
    return ErrorResponse(
        error=message,
        code=code,
        category=category,
        details=details or None,
        request_id=request_id,
    )
