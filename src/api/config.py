"""API Configuration.

Settings for the switchover control API.
"""

from dataclasses import dataclass, field


@dataclass
class APIConfig:
    """Core API settings."""

    title: str = "Blue/Green Switchover API"
    version: str = "2.0.0"
    description: str = "Gradual blue/green traffic migration with health-gated rollback"
    service_name: str = "bluegreen-switchover"
    prefix: str = ""
    docs_url: str = "/docs"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    cors_methods: list[str] = field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    cors_headers: list[str] = field(default_factory=lambda: ["Content-Type"])
    features: list[str] = field(default_factory=lambda: [
        "gradual-migration",
        "health-monitoring",
        "auto-rollback",
    ])


DEFAULT_API_CONFIG = APIConfig()
