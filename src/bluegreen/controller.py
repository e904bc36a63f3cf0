"""Blue/Green Switchover — Migration Controller.

State machine driving a gradual, health-gated migration::

    stable ──begin──▶ migrating ──▶ stable       (all steps healthy, committed)
                                 ├─▶ rolled_back  (step/commit failure, restored)
                                 └─▶ failed       (validation failure, cancellation,
                                                   or the rollback itself failed)

The controller is the only writer of :class:`MigrationState`. Every
transition is applied under a lock and persisted before it is reported to
a caller. The lock is never held across an ``await``.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, Optional

from src.logging_config.context import OperationContext

from .config import Environment, FailureKind, MigrationConfig, MigrationStatus, StepStatus
from .models import (
    HealthVerdict,
    MigrationOutcome,
    MigrationState,
    StepRecord,
    ValidationReport,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "migration interrupted by process restart"
CANCELLED_ERROR = "migration cancelled before completion"


class MigrationController:
    """Orchestrates migrations and rollbacks between blue and green."""

    def __init__(self, config: MigrationConfig, state_store, active_store, monitor, traffic):
        self._config = config
        self._state_store = state_store
        self._active_store = active_store
        self._monitor = monitor
        self._traffic = traffic
        self._lock = threading.Lock()
        self._busy = False
        self._abort_requested = False
        self._state = self._load_state()

    @property
    def config(self) -> MigrationConfig:
        return self._config

    # ── Queries ──────────────────────────────────────────────────────

    def status(self) -> MigrationState:
        """Return a read-only copy of the current migration state."""
        with self._lock:
            return self._state.copy()

    async def validate_environments(self) -> ValidationReport:
        """Probe both environments without moving any traffic."""
        logger.info("Validating both blue and green environments")
        blue, green = await asyncio.gather(
            self._monitor.check_now(Environment.BLUE),
            self._monitor.check_now(Environment.GREEN),
        )
        report = ValidationReport({Environment.BLUE: blue, Environment.GREEN: green})
        if report.success:
            logger.info("Both environments are healthy and ready")
        else:
            logger.warning(report.error)
        return report

    def system_status(self) -> Dict[str, Any]:
        return {
            "active": self._active_store.current().value,
            "next": self._active_store.next_environment().value,
            "migration": self.status().to_dict(),
            "health": self._monitor.status(),
            "traffic": self._traffic.status(),
            "timestamp": utc_now_iso(),
        }

    # ── Migration ────────────────────────────────────────────────────

    async def begin_migration(self, target: Environment) -> MigrationOutcome:
        """Move traffic to ``target`` step by step, rolling back on failure."""
        current_active = self._active_store.current()

        with self._lock:
            if target == current_active:
                logger.info("%s environment is already active", target.value)
                return MigrationOutcome(True, environment=target, already_active=True)
            if self._busy or self._state.status == MigrationStatus.MIGRATING:
                logger.warning(
                    "Rejected migration to %s: another operation is in flight", target.value
                )
                return MigrationOutcome(
                    False,
                    environment=target,
                    failure_kind=FailureKind.CONFLICT,
                    error="A migration or rollback is already in progress",
                )
            self._busy = True
            self._abort_requested = False
            self._state = MigrationState(
                status=MigrationStatus.MIGRATING,
                active=current_active,
                target=target,
                percentage=0,
                start_time=utc_now_iso(),
                rollback_ready=False,
            )
            self._state_store.save(self._state)

        logger.info(
            "Starting gradual migration %s -> %s", current_active.value, target.value
        )
        try:
            with OperationContext(
                "migration", source=current_active.value, target=target.value
            ):
                return await self._run_migration(target)
        except asyncio.CancelledError:
            logger.error("Migration to %s cancelled mid-flight; marking it failed", target.value)
            self._update(
                status=MigrationStatus.FAILED,
                error=CANCELLED_ERROR,
                failure_kind=FailureKind.INTERRUPTED,
                completed_at=utc_now_iso(),
            )
            raise
        except Exception as e:
            logger.exception("Migration to %s crashed", target.value)
            self._update(
                status=MigrationStatus.FAILED,
                error=f"Unexpected error during migration: {e}",
                completed_at=utc_now_iso(),
            )
            raise
        finally:
            with self._lock:
                self._busy = False
                self._abort_requested = False

    def abort(self) -> bool:
        """Ask an in-flight migration to stop and roll back before its next step."""
        with self._lock:
            if self._state.status != MigrationStatus.MIGRATING:
                return False
            self._abort_requested = True
        logger.warning("Abort requested for in-flight migration")
        return True

    async def _run_migration(self, target: Environment) -> MigrationOutcome:
        report = await self.validate_environments()
        if not report.success:
            error = f"Pre-migration validation failed: {report.error}"
            self._update(
                status=MigrationStatus.FAILED,
                error=error,
                failure_kind=FailureKind.VALIDATION,
                completed_at=utc_now_iso(),
            )
            return MigrationOutcome(
                False, environment=target, failure_kind=FailureKind.VALIDATION, error=error
            )
        self._update(rollback_ready=True)

        for percentage in self._config.step_percentages:
            if self._abort_requested:
                return await self._fail_and_restore(
                    target,
                    FailureKind.ABORTED,
                    f"Migration aborted by operator before {percentage}%",
                )

            logger.info("Migrating %d%% traffic to %s", percentage, target.value)
            if not await self._traffic.set_distribution(target, percentage):
                self._append_step(StepRecord(percentage, StepStatus.FAILED))
                return await self._fail_and_restore(
                    target,
                    FailureKind.STEP_HEALTH,
                    f"Migration failed at {percentage}%: traffic shift rejected by proxy",
                    failed_at=percentage,
                )

            await asyncio.sleep(self._config.settle_seconds)
            verdict = await self._check_step(target)
            if not verdict.success:
                logger.error(
                    "Health check failed at %d%% - initiating rollback", percentage
                )
                self._append_step(StepRecord(percentage, StepStatus.FAILED, verdict))
                return await self._fail_and_restore(
                    target,
                    FailureKind.STEP_HEALTH,
                    f"Migration failed at {percentage}%: {verdict.describe()}",
                    failed_at=percentage,
                    health=verdict,
                )

            self._append_step(
                StepRecord(percentage, StepStatus.COMPLETED, verdict), percentage=percentage
            )
            logger.info("Successfully migrated %d%% traffic", percentage)

        commit = await self._active_store.commit(target)
        if not commit.success:
            return await self._fail_and_restore(
                target,
                FailureKind.COMMIT,
                f"Failed to make {target.value} active: {commit.error}",
                failed_at=self._config.step_percentages[-1],
            )

        state = self._update(
            status=MigrationStatus.STABLE,
            active=target,
            target=None,
            percentage=100,
            start_time=None,
            completed_at=utc_now_iso(),
            error=None,
            failure_kind=None,
            manual_intervention_required=False,
        )
        logger.info("Migration to %s completed successfully", target.value)
        return MigrationOutcome(True, environment=target, steps=state.steps)

    async def _check_step(self, target: Environment) -> HealthVerdict:
        verdict = await self._monitor.check_now(target)
        retries = self._config.step_health_retries
        for attempt in range(1, retries + 1):
            if verdict.success:
                break
            logger.warning(
                "Step health check failed for %s, retry %d/%d", target.value, attempt, retries
            )
            verdict = await self._monitor.check_now(target)
        return verdict

    # ── Rollback ─────────────────────────────────────────────────────

    async def rollback(self) -> MigrationOutcome:
        """Operator-initiated restore of 100% traffic to the rollback target."""
        with self._lock:
            if self._busy or self._state.status == MigrationStatus.MIGRATING:
                return MigrationOutcome(
                    False,
                    failure_kind=FailureKind.CONFLICT,
                    error="Cannot roll back while another operation is in flight; "
                    "abort the migration instead",
                )
            self._busy = True
            active = self._state.active
            cause = self._state.error

        try:
            with OperationContext("rollback", target=active.value):
                error = await self._restore(cause)
        finally:
            with self._lock:
                self._busy = False

        if error is not None:
            return MigrationOutcome(
                False,
                environment=active,
                failure_kind=FailureKind.ROLLBACK,
                error=error,
                manual_intervention_required=True,
            )
        return MigrationOutcome(True, environment=active, rolled_back_to=active)

    async def _fail_and_restore(
        self,
        target: Environment,
        kind: FailureKind,
        error: str,
        failed_at: Optional[int] = None,
        health: Optional[HealthVerdict] = None,
    ) -> MigrationOutcome:
        restore_error = await self._restore(error, kind)
        state = self.status()

        if restore_error is not None:
            return MigrationOutcome(
                False,
                environment=target,
                failure_kind=FailureKind.ROLLBACK,
                error=restore_error,
                failed_at=failed_at,
                health=health,
                manual_intervention_required=True,
                steps=state.steps,
            )
        return MigrationOutcome(
            False,
            environment=target,
            failure_kind=kind,
            error=error,
            failed_at=failed_at,
            health=health,
            rolled_back_to=state.active,
            steps=state.steps,
        )

    async def _restore(
        self, cause: Optional[str] = None, kind: Optional[FailureKind] = None
    ) -> Optional[str]:
        """Put 100% of traffic back on the rollback target.

        ``cause`` and ``kind`` describe the failure that triggered the
        restore; they are only written once the final status is known.
        Returns None on success, or the error after marking the state as
        needing manual intervention. Never retried.
        """
        with self._lock:
            active = self._state.active
        logger.warning("Initiating rollback to %s environment", active.value)

        if not await self._traffic.set_distribution(active, 100):
            return self._mark_rollback_failed(
                f"could not restore 100% traffic to {active.value}", cause
            )

        if self._active_store.current() != active:
            commit = await self._active_store.commit(active)
            if not commit.success:
                return self._mark_rollback_failed(
                    f"compensating switch back to {active.value} failed: {commit.error}",
                    cause,
                )

        changes = dict(
            status=MigrationStatus.ROLLED_BACK,
            percentage=0,
            completed_at=utc_now_iso(),
            error=None,
            manual_intervention_required=False,
        )
        if kind is not None:
            changes["failure_kind"] = kind
        self._update(**changes)
        logger.info("Rollback to %s completed successfully", active.value)
        return None

    def _mark_rollback_failed(self, reason: str, cause: Optional[str] = None) -> str:
        error = f"Rollback failed: {reason}"
        if cause:
            error = f"{cause}; {error}"
        logger.critical("%s - manual intervention required", error)
        self._update(
            status=MigrationStatus.FAILED,
            error=error,
            failure_kind=FailureKind.ROLLBACK,
            manual_intervention_required=True,
            completed_at=utc_now_iso(),
        )
        return error

    # ── Internal helpers ─────────────────────────────────────────────

    def _load_state(self) -> MigrationState:
        state = self._state_store.load()
        if state is None:
            state = MigrationState(active=self._active_store.current())
            self._state_store.save(state)
            return state

        if state.status == MigrationStatus.MIGRATING:
            logger.error(
                "Found migration %s -> %s in flight at startup; marking it failed",
                state.active.value,
                state.target.value if state.target else "?",
            )
            state.status = MigrationStatus.FAILED
            state.error = INTERRUPTED_ERROR
            state.failure_kind = FailureKind.INTERRUPTED
            state.completed_at = utc_now_iso()
            self._state_store.save(state)
        return state

    def _update(self, **changes: Any) -> MigrationState:
        """Apply field changes, persist, and return a snapshot."""
        with self._lock:
            for name, value in changes.items():
                setattr(self._state, name, value)
            self._state_store.save(self._state)
            return self._state.copy()

    def _append_step(self, step: StepRecord, percentage: Optional[int] = None) -> None:
        with self._lock:
            self._state.steps.append(step)
            if percentage is not None:
                self._state.percentage = percentage
            self._state_store.save(self._state)
