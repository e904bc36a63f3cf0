"""Blue/Green Switchover — Data Models.

Health verdicts, step records, the persisted migration state and the
result objects returned to callers. Every model round-trips through plain
dicts so it can be written to JSON and served over HTTP unchanged.
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import Environment, FailureKind, MigrationStatus, StepStatus

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SubVerdict:
    """Result of one health sub-check."""

    success: bool
    detail: str = ""
    error: Optional[str] = None
    duration_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "detail": self.detail}
        if self.error is not None:
            data["error"] = self.error
        if self.duration_ms is not None:
            data["duration_ms"] = self.duration_ms
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubVerdict":
        return cls(
            success=bool(data.get("success", False)),
            detail=data.get("detail", ""),
            error=data.get("error"),
            duration_ms=data.get("duration_ms"),
        )


@dataclass
class HealthVerdict:
    """Aggregate health of one environment at one point in time."""

    success: bool
    environment: Environment
    checks: Dict[str, SubVerdict] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def failed_checks(self) -> List[str]:
        return [name for name, check in self.checks.items() if not check.success]

    def describe(self) -> str:
        """One-line explanation of a verdict, used as an error message."""
        if self.success:
            return f"{self.environment.value} is healthy"
        parts = []
        for name in self.failed_checks:
            check = self.checks[name]
            parts.append(f"{name}: {check.error or check.detail}")
        return f"{self.environment.value} is unhealthy ({'; '.join(parts)})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "environment": self.environment.value,
            "checks": {name: c.to_dict() for name, c in self.checks.items()},
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthVerdict":
        return cls(
            success=bool(data.get("success", False)),
            environment=Environment(data["environment"]),
            checks={
                name: SubVerdict.from_dict(c)
                for name, c in (data.get("checks") or {}).items()
            },
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


@dataclass
class StepRecord:
    """One percentage step of a migration."""

    percentage: int
    status: StepStatus
    health: Optional[HealthVerdict] = None
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "timestamp": self.timestamp,
            "health": self.health.to_dict() if self.health else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepRecord":
        health = data.get("health")
        return cls(
            percentage=int(data["percentage"]),
            status=StepStatus(data["status"]),
            health=HealthVerdict.from_dict(health) if health else None,
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


@dataclass
class MigrationState:
    """The single, process-wide migration record."""

    status: MigrationStatus = MigrationStatus.STABLE
    active: Environment = Environment.BLUE
    target: Optional[Environment] = None
    percentage: int = 0
    steps: List[StepRecord] = field(default_factory=list)
    start_time: Optional[str] = None
    completed_at: Optional[str] = None
    rollback_ready: bool = True
    error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    manual_intervention_required: bool = False

    def copy(self) -> "MigrationState":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "active": self.active.value,
            "target": self.target.value if self.target else None,
            "percentage": self.percentage,
            "steps": [s.to_dict() for s in self.steps],
            "start_time": self.start_time,
            "completed_at": self.completed_at,
            "rollback_ready": self.rollback_ready,
            "error": self.error,
            "failure_kind": self.failure_kind.value if self.failure_kind else None,
            "manual_intervention_required": self.manual_intervention_required,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationState":
        target = data.get("target")
        failure_kind = data.get("failure_kind")
        return cls(
            status=MigrationStatus(data.get("status", MigrationStatus.STABLE.value)),
            active=Environment(data.get("active", Environment.BLUE.value)),
            target=Environment(target) if target else None,
            percentage=int(data.get("percentage", 0)),
            steps=[StepRecord.from_dict(s) for s in data.get("steps") or []],
            start_time=data.get("start_time"),
            completed_at=data.get("completed_at"),
            rollback_ready=bool(data.get("rollback_ready", True)),
            error=data.get("error"),
            failure_kind=FailureKind(failure_kind) if failure_kind else None,
            manual_intervention_required=bool(
                data.get("manual_intervention_required", False)
            ),
        )


@dataclass
class MigrationOutcome:
    """Result object returned for every migration or rollback request."""

    success: bool
    environment: Optional[Environment] = None
    already_active: bool = False
    failure_kind: Optional[FailureKind] = None
    error: Optional[str] = None
    failed_at: Optional[int] = None
    health: Optional[HealthVerdict] = None
    rolled_back_to: Optional[Environment] = None
    manual_intervention_required: bool = False
    steps: List[StepRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "environment": self.environment.value if self.environment else None,
            "already_active": self.already_active,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.failure_kind is not None:
            data["failure_kind"] = self.failure_kind.value
        if self.error is not None:
            data["error"] = self.error
        if self.failed_at is not None:
            data["failed_at"] = self.failed_at
        if self.health is not None:
            data["health"] = self.health.to_dict()
        if self.rolled_back_to is not None:
            data["rolled_back_to"] = self.rolled_back_to.value
        if self.manual_intervention_required:
            data["manual_intervention_required"] = True
        return data


@dataclass
class ValidationReport:
    """Health of both environments checked side by side."""

    verdicts: Dict[Environment, HealthVerdict]

    @property
    def success(self) -> bool:
        return all(v.success for v in self.verdicts.values())

    @property
    def error(self) -> Optional[str]:
        if self.success:
            return None
        unhealthy = [v.describe() for v in self.verdicts.values() if not v.success]
        return "One or both environments are unhealthy: " + "; ".join(unhealthy)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.error:
            data["error"] = self.error
        for env, verdict in self.verdicts.items():
            data[env.value] = verdict.to_dict()
        return data
