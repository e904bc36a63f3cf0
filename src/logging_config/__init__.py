"""Structured Logging & Request Tracing.

Provides structured JSON logging, request ID propagation, operation
context binding and slow-operation timing for the switchover service.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel
from src.logging_config.context import OperationContext, RequestContext, generate_request_id
from src.logging_config.middleware import RequestTracingMiddleware
from src.logging_config.performance import log_performance
from src.logging_config.setup import configure_logging

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "OperationContext",
    "RequestContext",
    "RequestTracingMiddleware",
    "configure_logging",
    "generate_request_id",
    "log_performance",
]
