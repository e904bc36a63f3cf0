"""Reverse-proxy collaborator.

Wraps the external nginx process: configuration validation, graceful
reload and the upstream weight block. Command failures surface as
:class:`~.commands.CommandError`; callers decide what a failure means.
"""

import logging
from typing import Dict, Optional

from src.logging_config.performance import log_performance

from .commands import CommandError, run_command
from .config import Environment, MigrationConfig
from .persistence import temp_path_for

logger = logging.getLogger(__name__)


class NginxProxy:
    """Drives nginx through its command-line interface."""

    def __init__(self, config: MigrationConfig):
        self._config = config

    async def validate(self, candidate: Optional[str] = None) -> None:
        """Validate the prospective configuration.

        ``{candidate}`` in the configured command is replaced with the path
        of the file about to be installed.
        """
        command = [
            part.replace("{candidate}", candidate or "")
            for part in self._config.validate_command
        ]
        await run_command(command, self._config.command_timeout_seconds)
        logger.debug("Proxy configuration valid (candidate=%s)", candidate)

    @log_performance()
    async def reload(self) -> None:
        """Apply the configuration without dropping in-flight connections."""
        await run_command(
            self._config.reload_command, self._config.command_timeout_seconds
        )
        logger.info("Proxy reloaded")

    def render_weights(self, weights: Dict[Environment, int]) -> str:
        lines = [
            "# Traffic distribution (managed by the switchover service)",
            f"upstream {self._config.upstream_name} {{",
        ]
        for env in Environment:
            endpoint = self._config.endpoint(env)
            weight = weights.get(env, 0)
            server = f"{endpoint.host}:{endpoint.port}"
            # nginx rejects weight=0; a drained server is marked down instead
            if weight > 0:
                lines.append(f"    server {server} weight={weight};")
            else:
                lines.append(f"    server {server} down;")
        lines.append("}")
        return "\n".join(lines) + "\n"

    @log_performance()
    async def apply_weights(self, weights: Dict[Environment, int]) -> None:
        """Install a new upstream weight block: write, validate, swap, reload."""
        path = self._config.weights_file
        tmp_file = temp_path_for(path)
        tmp_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file.write_text(self.render_weights(weights))
        try:
            await self.validate(str(tmp_file))
        except CommandError:
            tmp_file.unlink(missing_ok=True)
            raise
        tmp_file.replace(path)
        await self.reload()
