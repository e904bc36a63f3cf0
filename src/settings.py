"""Centralized settings for the switchover service.

Uses pydantic-settings to load from environment variables (prefixed
BLUEGREEN_) with defaults matching the reference nginx/docker layout.
List values are given as JSON, e.g. BLUEGREEN_STEP_PERCENTAGES='[10, 50, 100]'.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from src.bluegreen.config import Environment, EnvironmentEndpoint, MigrationConfig


class Settings(BaseSettings):
    """Switchover settings loaded from environment variables."""

    # --- API server ---
    host: str = "0.0.0.0"
    port: int = 9000

    # --- Environments ---
    blue_host: str = "blue-app"
    blue_port: int = 3001
    blue_container: str = "blue-app"
    green_host: str = "green-app"
    green_port: int = 3002
    green_container: str = "green-app"
    health_url_template: str = "http://{host}:{port}/health"

    # --- Migration policy ---
    step_percentages: list[int] = [25, 50, 75, 100]
    settle_seconds: float = 5.0
    step_health_retries: int = 0

    # --- Health probing ---
    probe_timeout_seconds: float = 3.0
    connect_timeout_seconds: float = 3.0
    latency_ceiling_ms: float = 1000.0
    latency_gates_health: bool = True
    liveness_command: list[str] = [
        "docker", "inspect", "--format", "{{.State.Health.Status}}", "{container}",
    ]
    liveness_expected_output: str = "healthy"
    health_history_size: int = 100
    monitor_interval_seconds: float = 30.0
    monitor_enabled: bool = True

    # --- Proxy ---
    validate_command: list[str] = ["nginx", "-t"]
    reload_command: list[str] = ["nginx", "-s", "reload"]
    command_timeout_seconds: float = 10.0
    upstream_name: str = "app_backend"
    active_env_file: str = "/etc/nginx/conf.d/active.env"
    weights_file: str = "/etc/nginx/conf.d/upstream_weights.conf"

    # --- State ---
    state_dir: str = "/etc/deployment"

    model_config = {
        "env_prefix": "BLUEGREEN_",
        "env_file": ".env",
        "extra": "ignore",
    }

    def to_migration_config(self) -> MigrationConfig:
        """Build the core configuration object from these settings."""
        state_dir = Path(self.state_dir)
        return MigrationConfig(
            endpoints={
                Environment.BLUE: EnvironmentEndpoint(
                    self.blue_host, self.blue_port, self.blue_container
                ),
                Environment.GREEN: EnvironmentEndpoint(
                    self.green_host, self.green_port, self.green_container
                ),
            },
            health_url_template=self.health_url_template,
            step_percentages=list(self.step_percentages),
            settle_seconds=self.settle_seconds,
            step_health_retries=self.step_health_retries,
            probe_timeout_seconds=self.probe_timeout_seconds,
            connect_timeout_seconds=self.connect_timeout_seconds,
            latency_ceiling_ms=self.latency_ceiling_ms,
            latency_gates_health=self.latency_gates_health,
            liveness_command=list(self.liveness_command),
            liveness_expected_output=self.liveness_expected_output,
            health_history_size=self.health_history_size,
            monitor_interval_seconds=self.monitor_interval_seconds,
            validate_command=list(self.validate_command),
            reload_command=list(self.reload_command),
            command_timeout_seconds=self.command_timeout_seconds,
            upstream_name=self.upstream_name,
            active_env_file=self.active_env_file,
            weights_file=self.weights_file,
            migration_state_file=str(state_dir / "migration_state.json"),
            health_log_file=str(state_dir / "health_log.json"),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
