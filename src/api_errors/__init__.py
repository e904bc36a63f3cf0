"""API Error Handling.

Provides structured error responses, exception handlers and the
error-catching middleware for the switchover FastAPI layer.
"""

from src.api_errors.config import (
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
)
from src.api_errors.exceptions import (
    ConflictError,
    SwitchoverAPIError,
    ValidationError,
)
from src.api_errors.handlers import (
    ErrorResponse,
    create_error_response,
    register_exception_handlers,
)
from src.api_errors.middleware import ErrorHandlingMiddleware

__all__ = [
    # Config
    "ErrorCode",
    "ErrorConfig",
    "ErrorSeverity",
    # Exceptions
    "ConflictError",
    "SwitchoverAPIError",
    "ValidationError",
    # Handlers
    "ErrorResponse",
    "create_error_response",
    "register_exception_handlers",
    # Middleware
    "ErrorHandlingMiddleware",
]
