"""Blue/Green Switchover: gradual, health-gated traffic migration."""

from .config import (
    Environment,
    MigrationStatus,
    StepStatus,
    FailureKind,
    EnvironmentEndpoint,
    MigrationConfig,
)
from .models import (
    SubVerdict,
    HealthVerdict,
    StepRecord,
    MigrationState,
    MigrationOutcome,
    ValidationReport,
)
from .commands import CommandError
from .persistence import MigrationStateStore
from .proxy import NginxProxy
from .probe import HealthProbe
from .monitor import HealthMonitor
from .environment import ActiveEnvironmentStore, CommitResult
from .traffic import TrafficSplit, TrafficController
from .controller import MigrationController
from .system import SwitchoverSystem, build_system

__all__ = [
    # Config
    "Environment",
    "MigrationStatus",
    "StepStatus",
    "FailureKind",
    "EnvironmentEndpoint",
    "MigrationConfig",
    # Models
    "SubVerdict",
    "HealthVerdict",
    "StepRecord",
    "MigrationState",
    "MigrationOutcome",
    "ValidationReport",
    # Collaborators
    "CommandError",
    "NginxProxy",
    # Components
    "MigrationStateStore",
    "HealthProbe",
    "HealthMonitor",
    "ActiveEnvironmentStore",
    "CommitResult",
    "TrafficSplit",
    "TrafficController",
    "MigrationController",
    # Wiring
    "SwitchoverSystem",
    "build_system",
]
