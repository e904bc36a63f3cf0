"""Switchover Control API.

HTTP surface over the blue/green migration controller: status,
validation, gradual switch, rollback and abort.

Example:
    from src.api import create_app
    app = create_app()
"""

from src.api.config import APIConfig, DEFAULT_API_CONFIG
from src.api.models import AbortResponse, HealthResponse
from src.api.app import create_app

__all__ = [
    # Config
    "APIConfig",
    "DEFAULT_API_CONFIG",
    # Models
    "AbortResponse",
    "HealthResponse",
    # App
    "create_app",
]
