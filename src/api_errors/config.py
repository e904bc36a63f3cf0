"""API Error Configuration.

Defines error codes, severity levels, and configuration for
structured error handling across the switchover API.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class ErrorCode(Enum):
    """Standardized error codes for API responses."""

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_LIMIT = "INVALID_LIMIT"

    # Conflict errors (409)
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    NO_MIGRATION_IN_PROGRESS = "NO_MIGRATION_IN_PROGRESS"

    # Server errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(Enum):
    """Severity levels for error logging."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Map error codes to HTTP status codes
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_LIMIT: 400,
    ErrorCode.RESOURCE_CONFLICT: 409,
    ErrorCode.NO_MIGRATION_IN_PROGRESS: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Map error codes to severity
ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.VALIDATION_ERROR: ErrorSeverity.LOW,
    ErrorCode.INVALID_LIMIT: ErrorSeverity.LOW,
    ErrorCode.RESOURCE_CONFLICT: ErrorSeverity.MEDIUM,
    ErrorCode.NO_MIGRATION_IN_PROGRESS: ErrorSeverity.LOW,
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
}


@dataclass
class ErrorConfig:
    """Configuration for API error handling.

    Internal exception text is never returned to clients; it only
    reaches the logs.
    """

    include_request_id: bool = True


DEFAULT_ERROR_CONFIG = ErrorConfig()
