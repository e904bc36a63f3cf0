"""Tests for the migration controller: gradual switch, rollback and recovery."""

import asyncio
from pathlib import Path

import pytest

from src.bluegreen import (
    Environment,
    FailureKind,
    MigrationState,
    MigrationStateStore,
    MigrationStatus,
    StepStatus,
    build_system,
)
from src.bluegreen.controller import CANCELLED_ERROR, INTERRUPTED_ERROR
from src.bluegreen.environment import parse_directive

from conftest import write_active

BLUE = Environment.BLUE
GREEN = Environment.GREEN


def _live(config) -> Environment:
    return parse_directive(Path(config.active_env_file).read_text())


# ── Happy path ───────────────────────────────────────────────────────


class TestGradualMigration:
    @pytest.mark.asyncio
    async def test_successful_migration(self, system, config, proxy):
        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is True
        assert outcome.environment == GREEN
        assert [s.percentage for s in outcome.steps] == [25, 50, 75, 100]
        assert all(s.status == StepStatus.COMPLETED for s in outcome.steps)
        assert [w[GREEN] for w in proxy.weights] == [25, 50, 75, 100]
        assert proxy.weights[-1] == {GREEN: 100, BLUE: 0}
        assert _live(config) == GREEN
        assert proxy.reloads == 1

        state = system.controller.status()
        assert state.status == MigrationStatus.STABLE
        assert state.active == GREEN
        assert state.target is None
        assert state.percentage == 100
        assert state.error is None
        assert state.start_time is None
        assert state.completed_at is not None

    @pytest.mark.asyncio
    async def test_steps_recorded_with_health(self, system):
        outcome = await system.controller.begin_migration(GREEN)
        for step in outcome.steps:
            assert step.health is not None
            assert step.health.environment == GREEN
            assert step.health.success is True

    @pytest.mark.asyncio
    async def test_state_persisted(self, system, config):
        await system.controller.begin_migration(GREEN)
        stored = MigrationStateStore(config.migration_state_file).load()
        assert stored.status == MigrationStatus.STABLE
        assert stored.active == GREEN
        assert len(stored.steps) == 4

    @pytest.mark.asyncio
    async def test_target_already_active(self, system, proxy):
        outcome = await system.controller.begin_migration(BLUE)
        assert outcome.success is True
        assert outcome.already_active is True
        assert proxy.weights == []
        assert system.controller.status().status == MigrationStatus.STABLE

    @pytest.mark.asyncio
    async def test_migrate_there_and_back(self, system, config):
        assert (await system.controller.begin_migration(GREEN)).success
        outcome = await system.controller.begin_migration(BLUE)
        assert outcome.success is True
        assert _live(config) == BLUE
        assert system.controller.status().active == BLUE

    @pytest.mark.asyncio
    async def test_custom_steps(self, config, proxy, probe):
        config.step_percentages = [10, 100]
        write_active(config, BLUE)
        system = build_system(config, proxy=proxy, probe=probe)
        outcome = await system.controller.begin_migration(GREEN)
        assert outcome.success is True
        assert [w[GREEN] for w in proxy.weights] == [10, 100]

    @pytest.mark.asyncio
    async def test_percentage_never_decreases_during_migration(self, system, proxy, probe):
        seen = []

        def healthy(env):
            seen.append(system.controller.status().percentage)
            return True

        probe.healthy_fn = healthy
        await system.controller.begin_migration(GREEN)
        assert seen == sorted(seen)


# ── Failures and automatic rollback ──────────────────────────────────


class TestAutomaticRollback:
    @pytest.mark.asyncio
    async def test_step_health_failure_rolls_back(self, system, config, proxy, probe):
        probe.healthy_fn = lambda env: not (env == GREEN and proxy.share(GREEN) >= 50)

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.STEP_HEALTH
        assert outcome.failed_at == 50
        assert outcome.rolled_back_to == BLUE
        assert outcome.health is not None and outcome.health.success is False
        assert "Migration failed at 50%" in outcome.error
        assert [(s.percentage, s.status) for s in outcome.steps] == [
            (25, StepStatus.COMPLETED),
            (50, StepStatus.FAILED),
        ]
        assert proxy.weights[-1] == {BLUE: 100, GREEN: 0}
        assert _live(config) == BLUE
        assert proxy.reloads == 0

        state = system.controller.status()
        assert state.status == MigrationStatus.ROLLED_BACK
        assert state.active == BLUE
        assert state.percentage == 0
        assert state.failure_kind == FailureKind.STEP_HEALTH
        assert state.manual_intervention_required is False
        assert state.error is None

    @pytest.mark.asyncio
    async def test_validation_failure_moves_no_traffic(self, system, proxy, probe):
        probe.healthy_fn = lambda env: env != GREEN

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.VALIDATION
        assert outcome.error.startswith("Pre-migration validation failed")
        assert proxy.weights == []
        state = system.controller.status()
        assert state.status == MigrationStatus.FAILED
        assert state.active == BLUE
        assert state.steps == []

    @pytest.mark.asyncio
    async def test_rejected_traffic_shift_rolls_back(self, system, proxy):
        proxy.reject_weights = lambda w: w[GREEN] == 75

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.STEP_HEALTH
        assert outcome.failed_at == 75
        assert proxy.weights[-1] == {BLUE: 100, GREEN: 0}
        assert system.controller.status().status == MigrationStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_commit_validation_failure_rolls_back(self, system, config, proxy):
        proxy.fail_validate = True

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.COMMIT
        assert outcome.failed_at == 100
        assert outcome.rolled_back_to == BLUE
        assert _live(config) == BLUE
        assert proxy.weights[-1] == {BLUE: 100, GREEN: 0}
        assert system.controller.status().status == MigrationStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_commit_reload_failure_is_compensated(self, system, config, proxy):
        proxy.fail_reload_times = 1

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.COMMIT
        assert _live(config) == BLUE
        assert proxy.reloads == 2
        state = system.controller.status()
        assert state.status == MigrationStatus.ROLLED_BACK
        assert state.active == BLUE

    @pytest.mark.asyncio
    async def test_failed_compensation_requires_manual_intervention(self, system, proxy):
        proxy.fail_reload_times = 2

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.ROLLBACK
        assert outcome.manual_intervention_required is True
        state = system.controller.status()
        assert state.status == MigrationStatus.FAILED
        assert state.failure_kind == FailureKind.ROLLBACK
        assert state.manual_intervention_required is True
        assert "Rollback failed" in state.error

    @pytest.mark.asyncio
    async def test_failed_restore_requires_manual_intervention(self, system, proxy, probe):
        probe.healthy_fn = lambda env: not (env == GREEN and proxy.share(GREEN) >= 50)
        proxy.reject_weights = lambda w: w[BLUE] == 100

        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.failure_kind == FailureKind.ROLLBACK
        assert outcome.manual_intervention_required is True
        assert outcome.failed_at == 50
        state = system.controller.status()
        assert state.status == MigrationStatus.FAILED
        assert state.error.startswith("Migration failed at 50%")
        assert "Rollback failed" in state.error

    @pytest.mark.asyncio
    async def test_error_only_recorded_with_final_status(self, system, config, proxy, probe):
        probe.healthy_fn = lambda env: not (env == GREEN and proxy.share(GREEN) >= 50)
        during_restore = []

        def observe(weights):
            if weights[BLUE] == 100:
                during_restore.append(system.controller.status())
                during_restore.append(MigrationStateStore(config.migration_state_file).load())
            return False

        proxy.reject_weights = observe
        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.failure_kind == FailureKind.STEP_HEALTH
        assert len(during_restore) == 2
        for state in during_restore:
            assert state.status == MigrationStatus.MIGRATING
            assert state.error is None
        final = system.controller.status()
        assert final.status == MigrationStatus.ROLLED_BACK
        assert final.failure_kind == FailureKind.STEP_HEALTH

    @pytest.mark.asyncio
    async def test_step_retries(self, config, proxy, probe):
        config.step_health_retries = 1
        write_active(config, BLUE)
        system = build_system(config, proxy=proxy, probe=probe)
        failures = {"left": 1}

        def flaky(env):
            if env == GREEN and proxy.share(GREEN) == 25 and failures["left"]:
                failures["left"] -= 1
                return False
            return True

        probe.healthy_fn = flaky
        outcome = await system.controller.begin_migration(GREEN)
        assert outcome.success is True
        assert failures["left"] == 0

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self, system, proxy, probe):
        failures = {"left": 1}

        def flaky(env):
            if env == GREEN and proxy.share(GREEN) == 25 and failures["left"]:
                failures["left"] -= 1
                return False
            return True

        probe.healthy_fn = flaky
        outcome = await system.controller.begin_migration(GREEN)
        assert outcome.success is False
        assert outcome.failed_at == 25

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_failed_and_propagates(self, system, probe):
        probe.error = RuntimeError("probe exploded")
        with pytest.raises(RuntimeError):
            await system.controller.begin_migration(GREEN)
        assert system.controller.status().status == MigrationStatus.FAILED

        probe.error = None
        outcome = await system.controller.begin_migration(GREEN)
        assert outcome.success is True


# ── Concurrency, abort and restart ───────────────────────────────────


class TestMigrationLifecycle:
    @pytest.mark.asyncio
    async def test_concurrent_begin_rejected(self, system):
        first, second = await asyncio.gather(
            system.controller.begin_migration(GREEN),
            system.controller.begin_migration(GREEN),
        )
        assert first.success is True
        assert second.success is False
        assert second.failure_kind == FailureKind.CONFLICT
        assert system.controller.status().active == GREEN

    @pytest.mark.asyncio
    async def test_rollback_while_migrating_rejected(self, system):
        migration = asyncio.create_task(system.controller.begin_migration(GREEN))
        await asyncio.sleep(0)
        outcome = await system.controller.rollback()
        assert outcome.failure_kind == FailureKind.CONFLICT
        assert (await migration).success is True

    @pytest.mark.asyncio
    async def test_cancelled_migration_can_be_rolled_back(self, system, config, proxy):
        config.settle_seconds = 30
        migration = asyncio.create_task(system.controller.begin_migration(GREEN))
        for _ in range(200):
            if proxy.weights:
                break
            await asyncio.sleep(0.01)
        assert proxy.share(GREEN) == 25

        migration.cancel()
        with pytest.raises(asyncio.CancelledError):
            await migration

        state = system.controller.status()
        assert state.status == MigrationStatus.FAILED
        assert state.failure_kind == FailureKind.INTERRUPTED
        assert state.error == CANCELLED_ERROR
        stored = MigrationStateStore(config.migration_state_file).load()
        assert stored.status == MigrationStatus.FAILED

        outcome = await system.controller.rollback()
        assert outcome.success is True
        assert proxy.weights[-1] == {BLUE: 100, GREEN: 0}
        assert system.controller.status().status == MigrationStatus.ROLLED_BACK

        config.settle_seconds = 0
        assert (await system.controller.begin_migration(GREEN)).success is True

    @pytest.mark.asyncio
    async def test_abort_rolls_back_before_next_step(self, system, proxy, probe):
        def healthy(env):
            if env == GREEN and proxy.share(GREEN) == 25:
                assert system.controller.abort() is True
            return True

        probe.healthy_fn = healthy
        outcome = await system.controller.begin_migration(GREEN)

        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.ABORTED
        assert [s.percentage for s in outcome.steps] == [25]
        assert proxy.weights[-1] == {BLUE: 100, GREEN: 0}
        assert system.controller.status().status == MigrationStatus.ROLLED_BACK

    def test_abort_without_migration(self, system):
        assert system.controller.abort() is False

    def test_restart_marks_interrupted_migration_failed(self, config, proxy, probe):
        write_active(config, BLUE)
        MigrationStateStore(config.migration_state_file).save(
            MigrationState(
                status=MigrationStatus.MIGRATING,
                active=BLUE,
                target=GREEN,
                percentage=50,
                rollback_ready=True,
            )
        )

        system = build_system(config, proxy=proxy, probe=probe)

        state = system.controller.status()
        assert state.status == MigrationStatus.FAILED
        assert state.failure_kind == FailureKind.INTERRUPTED
        assert state.error == INTERRUPTED_ERROR
        stored = MigrationStateStore(config.migration_state_file).load()
        assert stored.status == MigrationStatus.FAILED

    @pytest.mark.asyncio
    async def test_migration_allowed_after_interrupted_restart(self, config, proxy, probe):
        write_active(config, BLUE)
        MigrationStateStore(config.migration_state_file).save(
            MigrationState(status=MigrationStatus.MIGRATING, active=BLUE, target=GREEN)
        )
        system = build_system(config, proxy=proxy, probe=probe)
        outcome = await system.controller.begin_migration(GREEN)
        assert outcome.success is True

    def test_initial_state_follows_active_record(self, config, proxy, probe):
        write_active(config, GREEN)
        system = build_system(config, proxy=proxy, probe=probe)
        state = system.controller.status()
        assert state.status == MigrationStatus.STABLE
        assert state.active == GREEN
        assert Path(config.migration_state_file).exists()


# ── Operator rollback and queries ────────────────────────────────────


class TestOperatorActions:
    @pytest.mark.asyncio
    async def test_rollback_restores_full_traffic(self, system, proxy):
        await system.controller.begin_migration(GREEN)
        outcome = await system.controller.rollback()
        assert outcome.success is True
        assert outcome.rolled_back_to == GREEN
        assert proxy.weights[-1] == {GREEN: 100, BLUE: 0}
        assert system.controller.status().status == MigrationStatus.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_rollback_repairs_drifted_active_record(self, system, config, proxy):
        write_active(config, GREEN)
        outcome = await system.controller.rollback()
        assert outcome.success is True
        assert outcome.rolled_back_to == BLUE
        assert _live(config) == BLUE

    @pytest.mark.asyncio
    async def test_rollback_failure(self, system, proxy):
        proxy.reject_weights = lambda w: True
        outcome = await system.controller.rollback()
        assert outcome.success is False
        assert outcome.failure_kind == FailureKind.ROLLBACK
        assert outcome.manual_intervention_required is True
        assert system.controller.status().manual_intervention_required is True

    @pytest.mark.asyncio
    async def test_validate_environments(self, system, probe):
        probe.healthy_fn = lambda env: env == BLUE
        report = await system.controller.validate_environments()
        assert report.success is False
        assert report.verdicts[BLUE].success is True
        assert report.verdicts[GREEN].success is False
        assert system.monitor.summary()["total"] == 2

    @pytest.mark.asyncio
    async def test_system_status(self, system):
        await system.controller.begin_migration(GREEN)
        status = system.controller.system_status()
        assert status["active"] == "green"
        assert status["next"] == "blue"
        assert status["migration"]["status"] == "stable"
        assert status["health"]["summary"]["total"] > 0
        assert status["traffic"]["current_distribution"]["green"] == 100
        assert len(status["traffic"]["history"]) == 4
