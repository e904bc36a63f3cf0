"""Blue/Green Switchover — Configuration."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List

logger = logging.getLogger(__name__)


class Environment(str, enum.Enum):
    """The two interchangeable deployment environments."""

    BLUE = "blue"
    GREEN = "green"

    @property
    def counterpart(self) -> "Environment":
        return Environment.GREEN if self is Environment.BLUE else Environment.BLUE


class MigrationStatus(str, enum.Enum):
    """Lifecycle status of the migration state machine."""

    STABLE = "stable"
    MIGRATING = "migrating"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class StepStatus(str, enum.Enum):
    """Outcome of a single percentage step."""

    COMPLETED = "completed"
    FAILED = "failed"


class FailureKind(str, enum.Enum):
    """Why a migration or rollback did not succeed."""

    VALIDATION = "validation"
    STEP_HEALTH = "step_health"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    CONFLICT = "conflict"
    ABORTED = "aborted"
    INTERRUPTED = "interrupted"


@dataclass
class EnvironmentEndpoint:
    """Where an environment can be reached."""

    host: str
    port: int
    container: str

    def health_url(self, template: str) -> str:
        return template.format(host=self.host, port=self.port)


def _default_endpoints() -> Dict[Environment, EnvironmentEndpoint]:
    return {
        Environment.BLUE: EnvironmentEndpoint("blue-app", 3001, "blue-app"),
        Environment.GREEN: EnvironmentEndpoint("green-app", 3002, "green-app"),
    }


@dataclass
class MigrationConfig:
    """Runtime configuration for the switchover core with sensible defaults."""

    endpoints: Dict[Environment, EnvironmentEndpoint] = field(
        default_factory=_default_endpoints
    )
    health_url_template: str = "http://{host}:{port}/health"
    step_percentages: List[int] = field(default_factory=lambda: [25, 50, 75, 100])
    settle_seconds: float = 5.0
    step_health_retries: int = 0

    # Probe
    probe_timeout_seconds: float = 3.0
    connect_timeout_seconds: float = 3.0
    latency_ceiling_ms: float = 1000.0
    latency_gates_health: bool = True
    liveness_command: List[str] = field(
        default_factory=lambda: [
            "docker", "inspect", "--format", "{{.State.Health.Status}}", "{container}",
        ]
    )
    liveness_expected_output: str = "healthy"

    # Monitor
    health_history_size: int = 100
    monitor_interval_seconds: float = 30.0

    # Proxy collaborator
    validate_command: List[str] = field(default_factory=lambda: ["nginx", "-t"])
    reload_command: List[str] = field(default_factory=lambda: ["nginx", "-s", "reload"])
    command_timeout_seconds: float = 10.0
    upstream_name: str = "app_backend"

    # Files
    active_env_file: str = "/etc/nginx/conf.d/active.env"
    weights_file: str = "/etc/nginx/conf.d/upstream_weights.conf"
    migration_state_file: str = "/etc/deployment/migration_state.json"
    health_log_file: str = "/etc/deployment/health_log.json"

    def __post_init__(self):
        steps = list(self.step_percentages)
        if not steps:
            raise ValueError("step_percentages must not be empty")
        if any(b <= a for a, b in zip(steps, steps[1:])):
            raise ValueError(f"step_percentages must be strictly ascending: {steps}")
        if steps[0] <= 0 or steps[-1] != 100:
            raise ValueError(
                f"step_percentages must lie in (0, 100] and end at 100: {steps}"
            )
        if self.step_health_retries < 0:
            raise ValueError("step_health_retries must be >= 0")
        if self.health_history_size < 1:
            raise ValueError("health_history_size must be >= 1")
        missing = [e.value for e in Environment if e not in self.endpoints]
        if missing:
            raise ValueError(f"No endpoint configured for: {', '.join(missing)}")

    def endpoint(self, environment: Environment) -> EnvironmentEndpoint:
        return self.endpoints[environment]

    def health_url(self, environment: Environment) -> str:
        return self.endpoint(environment).health_url(self.health_url_template)
