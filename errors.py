"""
Centralized Error Handling for Fleet Analytics
Provides consistent error responses and logging

Features:
- Standardized error response format
- Exception mapping to HTTP status codes
- FastAPI exception handler registration
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Error Categories
# =============================================================================


class ErrorCategory(str, Enum):
    """Categories for error classification"""

    VALIDATION = "validation"
    EXTERNAL_SERVICE = "external_service"
    INTERNAL = "internal"


# =============================================================================
# Custom Exceptions
# =============================================================================


class FleetAnalyticsError(Exception):
    """Base exception for Fleet Analytics"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = utc_now().isoformat()


class InvalidConfigurationError(FleetAnalyticsError):
    """Unknown preset, bad weights, non-positive divisors"""

    def __init__(
        self, message: str, field: str = None, details: Optional[Dict] = None
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            status_code=400,
            details=details,
        )


class SnapshotFetchError(FleetAnalyticsError):
    """Upstream data fetch failed - the whole aggregation cycle is aborted"""

    def __init__(self, source: str, message: str, details: Optional[Dict] = None):
        details = details or {}
        details["source"] = source
        super().__init__(
            message=f"{source} fetch failed: {message}",
            category=ErrorCategory.EXTERNAL_SERVICE,
            status_code=502,
            details=details,
        )


# =============================================================================
# Error Response Builder
# =============================================================================


def build_error_response(
    error: FleetAnalyticsError,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build a standardized error response.

    Args:
        error: The exception to format
        request_id: Optional request ID for tracking

    Returns:
        Dict with error details
    """
    response = {
        "error": True,
        "category": error.category.value,
        "message": error.message,
        "status_code": error.status_code,
        "timestamp": error.timestamp,
        "details": error.details,
    }

    if request_id:
        response["request_id"] = request_id

    return response


# =============================================================================
# Exception Handlers for FastAPI
# =============================================================================


async def fleet_analytics_exception_handler(
    request: Request, exc: FleetAnalyticsError
) -> JSONResponse:
    """Handle FleetAnalyticsError exceptions"""
    logger.error(
        f"[{exc.category.value}] {exc.message}",
        extra={
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(exc),
    )


def register_exception_handlers(app):
    """
    Register exception handlers with a FastAPI app.

    Usage:
        from errors import register_exception_handlers
        register_exception_handlers(app)
    """
    app.add_exception_handler(FleetAnalyticsError, fleet_analytics_exception_handler)
    logger.info("✅ Exception handlers registered")


__all__ = [
    "ErrorCategory",
    "FleetAnalyticsError",
    "InvalidConfigurationError",
    "SnapshotFetchError",
    "build_error_response",
    "register_exception_handlers",
]
