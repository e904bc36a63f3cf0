"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.bluegreen import (  # noqa: E402
    CommandError,
    Environment,
    HealthVerdict,
    MigrationConfig,
    SubVerdict,
    build_system,
)
from src.bluegreen.environment import render_directive  # noqa: E402


class FakeProxy:
    """Records every proxy call; failures are switched on per test."""

    def __init__(self):
        self.fail_validate = False
        self.fail_reload_times = 0
        self.reject_weights: Optional[Callable[[Dict[Environment, int]], bool]] = None
        self.validated: List[Optional[str]] = []
        self.reloads = 0
        self.weights: List[Dict[Environment, int]] = []

    async def validate(self, candidate=None):
        self.validated.append(candidate)
        if self.fail_validate:
            raise CommandError(["nginx", "-t"], "unexpected \"}\" in active.env:3")

    async def reload(self):
        self.reloads += 1
        if self.fail_reload_times > 0:
            self.fail_reload_times -= 1
            raise CommandError(["nginx", "-s", "reload"], "nginx: [error] reload failed")

    async def apply_weights(self, weights):
        if self.reject_weights is not None and self.reject_weights(weights):
            raise CommandError(["nginx", "-t"], "upstream weights rejected")
        self.weights.append(dict(weights))

    def share(self, environment: Environment) -> int:
        """Traffic percentage last applied to ``environment``; 0 before any shift."""
        if not self.weights:
            return 0
        return self.weights[-1][environment]


class FakeProbe:
    """Returns scripted verdicts; healthy unless ``healthy_fn`` says otherwise."""

    def __init__(self):
        self.healthy_fn: Optional[Callable[[Environment], bool]] = None
        self.error: Optional[Exception] = None
        self.calls: List[Environment] = []

    async def probe(self, environment: Environment) -> HealthVerdict:
        self.calls.append(environment)
        if self.error is not None:
            raise self.error
        healthy = self.healthy_fn(environment) if self.healthy_fn else True
        return HealthVerdict(
            success=healthy,
            environment=environment,
            checks={
                "liveness": SubVerdict(True, "healthy"),
                "reachability": SubVerdict(
                    healthy,
                    "HTTP 200" if healthy else "HTTP 503",
                    error=None if healthy else "unexpected status 503",
                ),
            },
        )


def write_active(config: MigrationConfig, environment: Environment) -> None:
    path = Path(config.active_env_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_directive(environment))


@pytest.fixture
def config(tmp_path):
    return MigrationConfig(
        settle_seconds=0,
        monitor_interval_seconds=0.01,
        active_env_file=str(tmp_path / "nginx" / "active.env"),
        weights_file=str(tmp_path / "nginx" / "upstream_weights.conf"),
        migration_state_file=str(tmp_path / "state" / "migration_state.json"),
        health_log_file=str(tmp_path / "state" / "health_log.json"),
    )


@pytest.fixture
def proxy():
    return FakeProxy()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def system(config, proxy, probe):
    write_active(config, Environment.BLUE)
    return build_system(config, proxy=proxy, probe=probe)
