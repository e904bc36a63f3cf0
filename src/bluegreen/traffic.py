"""Blue/Green Switchover — Traffic Management."""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from .commands import CommandError
from .config import Environment

logger = logging.getLogger(__name__)

TRAFFIC_HISTORY_SIZE = 50


@dataclass
class TrafficSplit:
    """Describes how traffic is split between the two environments."""

    target: Environment
    percent_target: int = 0
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def weights(self) -> Dict[Environment, int]:
        return {
            self.target: self.percent_target,
            self.target.counterpart: 100 - self.percent_target,
        }

    def to_dict(self) -> Dict[str, Any]:
        weights = self.weights
        return {
            Environment.BLUE.value: weights[Environment.BLUE],
            Environment.GREEN.value: weights[Environment.GREEN],
            "target": self.target.value,
            "updated_at": self.updated_at.isoformat(),
        }


class TrafficController:
    """Controls the weighted split between blue and green.

    Only computes and requests weights; retrying a rejected shift is the
    migration controller's decision.
    """

    def __init__(self, proxy, active_store):
        self._proxy = proxy
        self._active_store = active_store
        self._current: Optional[TrafficSplit] = None
        self._history: Deque[TrafficSplit] = deque(maxlen=TRAFFIC_HISTORY_SIZE)
        self._lock = threading.Lock()

    async def set_distribution(self, target: Environment, percentage: int) -> bool:
        """Route ``percentage``% of traffic to ``target``, the rest to its counterpart."""
        if not 0 <= percentage <= 100:
            raise ValueError(f"percentage must be within [0, 100], got {percentage}")

        split = TrafficSplit(target=target, percent_target=percentage)
        try:
            await self._proxy.apply_weights(split.weights)
        except (CommandError, OSError) as e:
            logger.error(
                "Traffic shift to %s=%d%% rejected: %s", target.value, percentage, e
            )
            return False

        with self._lock:
            self._current = split
            self._history.append(split)
        logger.info(
            "Traffic distribution: %s=%d%% / %s=%d%%",
            target.value,
            percentage,
            target.counterpart.value,
            100 - percentage,
        )
        return True

    def current_distribution(self) -> Dict[str, Any]:
        with self._lock:
            current = self._current
        if current is None:
            current = TrafficSplit(target=self._active_store.current(), percent_target=100)
        return current.to_dict()

    def history(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._lock:
            splits = list(self._history)
        return [s.to_dict() for s in splits[-limit:]] if limit > 0 else []

    def status(self) -> Dict[str, Any]:
        return {
            "history": self.history(10),
            "current_distribution": self.current_distribution(),
        }

    def reset(self) -> None:
        """Clear all recorded splits (for testing)."""
        with self._lock:
            self._current = None
            self._history.clear()
