"""Exception Handlers & Error Envelope.

Renders switchover API errors as the structured envelope::

    {"success": false, "error": {"code", "message", "timestamp", ...}}
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse

from src.api_errors.config import (
    DEFAULT_ERROR_CONFIG,
    ERROR_SEVERITY_MAP,
    ERROR_STATUS_MAP,
    ErrorCode,
    ErrorConfig,
    ErrorSeverity,
)
from src.api_errors.exceptions import SwitchoverAPIError
from src.logging_config.context import get_request_id

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "An internal error occurred"

_SEVERITY_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorResponse:
    """One rendered API error; ``to_dict`` gives the wire envelope."""

    code: str
    message: str
    status_code: int = 500
    details: List[Dict[str, Any]] = field(default_factory=list)
    request_id: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.details:
            error["details"] = self.details
        if self.request_id:
            error["request_id"] = self.request_id
        return {"success": False, "error": error}


def create_error_response(
    error_code: ErrorCode,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
    request_id: Optional[str] = None,
    status_code: Optional[int] = None,
) -> ErrorResponse:
    return ErrorResponse(
        code=error_code.value,
        message=message,
        status_code=status_code or ERROR_STATUS_MAP.get(error_code, 500),
        details=details or [],
        request_id=request_id,
    )


def _request_id(config: ErrorConfig) -> Optional[str]:
    return (get_request_id() or None) if config.include_request_id else None


def handle_api_error(
    exc: SwitchoverAPIError, config: Optional[ErrorConfig] = None
) -> ErrorResponse:
    """Turn a raised SwitchoverAPIError into its envelope, logged by severity."""
    config = config or DEFAULT_ERROR_CONFIG
    severity = ERROR_SEVERITY_MAP.get(exc.error_code, ErrorSeverity.MEDIUM)
    logger.log(
        _SEVERITY_LEVELS[severity],
        "API error %s (%d): %s",
        exc.error_code.value,
        exc.status_code,
        exc.message,
    )
    return create_error_response(
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        request_id=_request_id(config),
        status_code=exc.status_code,
    )


def handle_unhandled_error(exc: Exception, config: Optional[ErrorConfig] = None) -> ErrorResponse:
    """500 envelope for an exception no route handled; the detail stays in the log."""
    config = config or DEFAULT_ERROR_CONFIG
    logger.error("Unhandled %s: %s", type(exc).__name__, exc, exc_info=exc)
    return create_error_response(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=INTERNAL_ERROR_MESSAGE,
        request_id=_request_id(config),
    )


def register_exception_handlers(app: Any, config: Optional[ErrorConfig] = None) -> None:
    """Install the SwitchoverAPIError handler on ``app``."""
    config = config or DEFAULT_ERROR_CONFIG

    async def _api_error_handler(request, exc: SwitchoverAPIError) -> JSONResponse:
        rendered = handle_api_error(exc, config)
        return JSONResponse(
            status_code=rendered.status_code,
            content=rendered.to_dict(),
            headers=exc.headers or None,
        )

    app.add_exception_handler(SwitchoverAPIError, _api_error_handler)
    app.state.error_config = config
    logger.debug("Registered switchover API exception handlers")
