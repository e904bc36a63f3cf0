"""Logging Configuration.

Settings for structured logging, log levels, and output formats.
"""

from dataclasses import dataclass, field
from enum import Enum


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    # Proxy commands and commits slower than this are logged as warnings
    slow_threshold_ms: float = 2000.0
    # Polled by load balancers; not worth a log line per hit
    exclude_paths: list[str] = field(default_factory=lambda: ["/health"])
    service_name: str = "bluegreen"


DEFAULT_LOGGING_CONFIG = LoggingConfig()
