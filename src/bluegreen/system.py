"""Component wiring for the switchover service."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import MigrationConfig
from .controller import MigrationController
from .environment import ActiveEnvironmentStore
from .monitor import HealthMonitor
from .persistence import MigrationStateStore
from .probe import HealthProbe
from .proxy import NginxProxy
from .traffic import TrafficController

logger = logging.getLogger(__name__)


@dataclass
class SwitchoverSystem:
    """All long-lived components of one switchover process."""

    config: MigrationConfig
    active_store: ActiveEnvironmentStore
    monitor: HealthMonitor
    traffic: TrafficController
    controller: MigrationController

    def start(self) -> None:
        self.monitor.start()

    async def stop(self) -> None:
        await self.monitor.stop()


def build_system(
    config: Optional[MigrationConfig] = None,
    proxy=None,
    probe=None,
) -> SwitchoverSystem:
    """Assemble the components; ``proxy`` and ``probe`` may be substituted."""
    config = config or MigrationConfig()
    proxy = proxy or NginxProxy(config)
    probe = probe or HealthProbe(config)

    active_store = ActiveEnvironmentStore(config, proxy)
    monitor = HealthMonitor(config, probe, active_store)
    traffic = TrafficController(proxy, active_store)
    controller = MigrationController(
        config,
        MigrationStateStore(config.migration_state_file),
        active_store,
        monitor,
        traffic,
    )
    logger.info(
        "Switchover system ready (active=%s, steps=%s)",
        active_store.current().value,
        config.step_percentages,
    )
    return SwitchoverSystem(config, active_store, monitor, traffic, controller)
