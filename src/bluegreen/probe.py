"""Blue/Green Switchover — Health Probe.

Multi-layer health assessment of one environment:

- liveness: the container runtime reports the instance as healthy
- reachability: GET on the health endpoint returns 2xx
- latency: the same endpoint answers under the latency ceiling

The three checks run concurrently, each under its own timeout. A probe
never raises; every failure is folded into the returned verdict.
"""

import asyncio
import logging
import time
from typing import Awaitable, Tuple

import aiohttp

from .commands import CommandError, run_command
from .config import Environment, EnvironmentEndpoint, MigrationConfig
from .models import HealthVerdict, SubVerdict

logger = logging.getLogger(__name__)

LIVENESS = "liveness"
REACHABILITY = "reachability"
LATENCY = "latency"

# Share of the sub-check timeout granted to the liveness command itself,
# so the command deadline fires before the guard cancels it.
LIVENESS_COMMAND_SHARE = 0.8


class HealthProbe:
    """Probes one environment and returns a :class:`HealthVerdict`."""

    def __init__(self, config: MigrationConfig):
        self._config = config

    @property
    def config(self) -> MigrationConfig:
        return self._config

    async def probe(self, environment: Environment) -> HealthVerdict:
        endpoint = self._config.endpoint(environment)
        url = self._config.health_url(environment)

        liveness, reachability, latency = await asyncio.gather(
            self._guarded(LIVENESS, self._check_liveness(endpoint)),
            self._guarded(REACHABILITY, self._check_reachability(url)),
            self._guarded(LATENCY, self._check_latency(url)),
        )

        success = liveness.success and reachability.success
        if self._config.latency_gates_health:
            success = success and latency.success

        verdict = HealthVerdict(
            success=success,
            environment=environment,
            checks={LIVENESS: liveness, REACHABILITY: reachability, LATENCY: latency},
        )
        if success:
            logger.debug("Probe %s: healthy", environment.value)
        else:
            logger.warning("Probe %s: %s", environment.value, verdict.describe())
        return verdict

    # ── Sub-checks ───────────────────────────────────────────────────

    async def _guarded(self, name: str, check: Awaitable[SubVerdict]) -> SubVerdict:
        timeout = self._config.probe_timeout_seconds
        try:
            return await asyncio.wait_for(check, timeout=timeout)
        except asyncio.TimeoutError:
            return SubVerdict(
                success=False,
                detail=f"{name} check timed out",
                error=f"no result within {timeout:.1f}s",
            )
        except Exception as e:
            logger.exception("Unexpected error in %s check", name)
            return SubVerdict(
                success=False,
                detail=f"{name} check errored",
                error=f"{type(e).__name__}: {e}",
            )

    async def _check_liveness(self, endpoint: EnvironmentEndpoint) -> SubVerdict:
        if not self._config.liveness_command:
            return SubVerdict(success=True, detail="liveness check disabled")

        command = [
            part.replace("{container}", endpoint.container)
            for part in self._config.liveness_command
        ]
        start = time.perf_counter()
        try:
            output = await run_command(
                command, self._config.probe_timeout_seconds * LIVENESS_COMMAND_SHARE
            )
        except CommandError as e:
            return SubVerdict(
                success=False,
                detail="unknown",
                error=e.message,
                duration_ms=_elapsed_ms(start),
            )

        status = output.strip()
        expected = self._config.liveness_expected_output
        return SubVerdict(
            success=status == expected,
            detail=status or "unknown",
            error=None if status == expected else f"expected '{expected}'",
            duration_ms=_elapsed_ms(start),
        )

    async def _check_reachability(self, url: str) -> SubVerdict:
        try:
            status, elapsed_ms = await self._get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return SubVerdict(
                success=False,
                detail=f"GET {url} failed",
                error=str(e) or type(e).__name__,
            )
        ok = 200 <= status < 300
        return SubVerdict(
            success=ok,
            detail=f"HTTP {status}",
            error=None if ok else f"unexpected status {status}",
            duration_ms=elapsed_ms,
        )

    async def _check_latency(self, url: str) -> SubVerdict:
        ceiling = self._config.latency_ceiling_ms
        try:
            status, elapsed_ms = await self._get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return SubVerdict(
                success=False,
                detail="no response to time",
                error=str(e) or type(e).__name__,
            )
        if not 200 <= status < 300:
            return SubVerdict(
                success=False,
                detail=f"HTTP {status}",
                error=f"unexpected status {status}",
                duration_ms=elapsed_ms,
            )
        ok = elapsed_ms < ceiling
        return SubVerdict(
            success=ok,
            detail=f"{elapsed_ms:.0f}ms (ceiling {ceiling:.0f}ms)",
            error=None if ok else "response slower than latency ceiling",
            duration_ms=elapsed_ms,
        )

    async def _get(self, url: str) -> Tuple[int, float]:
        timeout = aiohttp.ClientTimeout(
            total=self._config.probe_timeout_seconds,
            connect=self._config.connect_timeout_seconds,
        )
        start = time.perf_counter()
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as resp:
                await resp.read()
                return resp.status, _elapsed_ms(start)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
