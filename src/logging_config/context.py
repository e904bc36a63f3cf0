"""Request and Operation Context.

Context variables binding request IDs and the switchover operation in
progress (migration, rollback, validation) to every log entry emitted
while handling it.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
_operation_var: ContextVar[str] = ContextVar("operation", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_request_id() -> str:
    """Generate a unique request ID using UUID4."""
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    req_id = _request_id_var.get()
    if req_id:
        ctx["request_id"] = req_id
    corr_id = _correlation_id_var.get()
    if corr_id:
        ctx["correlation_id"] = corr_id
    operation = _operation_var.get()
    if operation:
        ctx["operation"] = operation
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class RequestContext:
    """Context manager for request-scoped logging context.

    Binds request_id and correlation_id to all log entries within the
    context and restores the previous values on exit.

    Example:
        with RequestContext(request_id="abc-123"):
            logger.info("processing request")  # includes request_id
    """

    request_id: str = ""
    correlation_id: str = ""
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.request_id:
            self.request_id = generate_request_id()
        if not self.correlation_id:
            self.correlation_id = self.request_id

    def __enter__(self) -> "RequestContext":
        self._tokens = [
            (_request_id_var, _request_id_var.set(self.request_id)),
            (_correlation_id_var, _correlation_id_var.set(self.correlation_id)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000


class OperationContext:
    """Binds a switchover operation and its fields to log entries.

    Example:
        with OperationContext("migration", target="green"):
            logger.info("shifting traffic")  # includes operation, target
    """

    def __init__(self, operation: str, **fields: Any):
        self.operation = operation
        self.fields = fields
        self._tokens = []

    def __enter__(self) -> "OperationContext":
        merged = {**_extra_context_var.get(), **self.fields}
        self._tokens = [
            (_operation_var, _operation_var.set(self.operation)),
            (_extra_context_var, _extra_context_var.set(merged)),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
