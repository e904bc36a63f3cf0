"""API Response Models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HealthResponse(BaseModel):
    """Liveness of the switchover service itself."""

    status: str = "healthy"
    service: str
    version: str
    features: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utc_now)


class AbortResponse(BaseModel):
    """Result of an abort request."""

    success: bool
    message: str
