"""Custom Exception Hierarchy.

Defines typed exceptions that map to specific HTTP status codes
and error codes for consistent API error responses.
"""

from typing import Any, Dict, List, Optional

from src.api_errors.config import ErrorCode, ERROR_STATUS_MAP


class SwitchoverAPIError(Exception):
    """Base exception for all switchover API errors.

    All custom API exceptions inherit from this, allowing a single
    exception handler to catch the entire hierarchy.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = ERROR_STATUS_MAP.get(error_code, 500)
        self.details = details or []
        self.headers = headers or {}


class ValidationError(SwitchoverAPIError):
    """Raised when request input fails validation."""

    def __init__(
        self,
        message: str = "Validation failed",
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
        field: Optional[str] = None,
    ):
        if field and not details:
            details = [{"field": field, "issue": message}]
        super().__init__(message, error_code, details)


class ConflictError(SwitchoverAPIError):
    """Raised when an action conflicts with the current migration state."""

    def __init__(
        self,
        message: str = "Resource conflict",
        error_code: ErrorCode = ErrorCode.RESOURCE_CONFLICT,
    ):
        super().__init__(message, error_code)
