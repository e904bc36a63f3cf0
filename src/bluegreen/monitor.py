"""Blue/Green Switchover — Health Monitor."""

import asyncio
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .config import Environment, MigrationConfig
from .models import HealthVerdict
from .persistence import atomic_write_json, read_json

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Owns the bounded health history and the background polling task.

    On-demand checks and the background poll may run concurrently against
    different environments; appending to the history is the only shared
    mutation and is serialized by a lock.
    """

    def __init__(self, config: MigrationConfig, probe, active_store):
        self._config = config
        self._probe = probe
        self._active_store = active_store
        self._history: Deque[HealthVerdict] = deque(maxlen=config.health_history_size)
        self._lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None
        self._load_history()

    @property
    def config(self) -> MigrationConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_now(self, environment: Environment) -> HealthVerdict:
        """Probe an environment immediately and record the verdict."""
        verdict = await self._probe.probe(environment)
        self.record(verdict)
        return verdict

    def record(self, verdict: HealthVerdict) -> None:
        """Append a verdict, evicting the oldest, and persist the health log."""
        with self._lock:
            self._history.append(verdict)
            payload = [v.to_dict() for v in self._history]
            try:
                atomic_write_json(self._config.health_log_file, payload)
            except OSError as e:
                logger.error("Error saving health log: %s", e)

    def recent(self, n: int = 10) -> List[HealthVerdict]:
        """Return up to ``n`` most recent verdicts, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._history)[-n:]

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            history = list(self._history)
        return {
            "total": len(history),
            "healthy": sum(1 for v in history if v.success),
            "last_check": history[-1].timestamp if history else None,
        }

    def status(self) -> Dict[str, Any]:
        return {
            "recent": [v.to_dict() for v in self.recent(10)],
            "summary": self.summary(),
        }

    # ── Background polling ───────────────────────────────────────────

    def start(self) -> None:
        """Start polling the active environment on a fixed interval."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Health monitoring started (interval=%.0fs)",
            self._config.monitor_interval_seconds,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Health monitoring stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.check_now(self._active_store.current())
            except Exception:
                logger.exception("Background health check failed")
            await asyncio.sleep(self._config.monitor_interval_seconds)

    # ── Internal helpers ─────────────────────────────────────────────

    def _load_history(self) -> None:
        data = read_json(self._config.health_log_file)
        if not isinstance(data, list):
            return
        for item in data:
            try:
                self._history.append(HealthVerdict.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed health log entry")
        logger.info("Loaded %d health records from log", len(self._history))
