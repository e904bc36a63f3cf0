"""Blue/Green Switchover — Active Environment Store.

The proxy control file holds a single directive naming the environment
that receives unweighted traffic::

    # Active Environment Configuration
    set $active "green";

Commits follow validate-before-commit, then atomic replace, then reload,
so a rejected configuration never reaches the live file.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .commands import CommandError
from .config import Environment, MigrationConfig
from .persistence import temp_path_for

logger = logging.getLogger(__name__)

_ACTIVE_PATTERN = re.compile(r'set\s+\$active\s+"([^"]+)"')


def render_directive(environment: Environment) -> str:
    return (
        "# Active Environment Configuration\n"
        f"# Current active: {environment.value}\n"
        f'set $active "{environment.value}";\n'
    )


def parse_directive(content: str) -> Optional[Environment]:
    """Extract the environment from the directive, or None if malformed."""
    match = _ACTIVE_PATTERN.search(content)
    if not match:
        return None
    try:
        return Environment(match.group(1))
    except ValueError:
        return None


@dataclass
class CommitResult:
    """Outcome of installing a new active-environment record."""

    success: bool
    environment: Environment
    stage: str = "done"
    error: Optional[str] = None
    switched: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "environment": self.environment.value,
            "stage": self.stage,
            "error": self.error,
            "switched": self.switched,
        }


class ActiveEnvironmentStore:
    """Reads and atomically replaces the proxy's active-environment record."""

    def __init__(self, config: MigrationConfig, proxy):
        self._path = Path(config.active_env_file)
        self._proxy = proxy

    @property
    def path(self) -> Path:
        return self._path

    def current(self) -> Environment:
        """Return the live active environment, defaulting to blue."""
        try:
            content = self._path.read_text()
        except OSError as e:
            logger.warning("Error reading active environment, assuming blue: %s", e)
            return Environment.BLUE

        environment = parse_directive(content)
        if environment is None:
            logger.warning(
                "Malformed active environment record in %s, assuming blue", self._path
            )
            return Environment.BLUE
        return environment

    def next_environment(self) -> Environment:
        """The environment the next deployment should target."""
        return self.current().counterpart

    async def commit(self, environment: Environment) -> CommitResult:
        """Make ``environment`` the live active record and reload the proxy."""
        tmp_file = temp_path_for(self._path)
        try:
            tmp_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(render_directive(environment))
        except OSError as e:
            logger.error("Failed to write configuration: %s", e)
            return CommitResult(False, environment, stage="write", error=str(e))

        try:
            await self._proxy.validate(str(tmp_file))
        except CommandError as e:
            tmp_file.unlink(missing_ok=True)
            logger.error("Proxy configuration validation failed: %s", e)
            return CommitResult(
                False,
                environment,
                stage="validate",
                error=f"Configuration validation failed: {e.message}",
            )

        try:
            tmp_file.replace(self._path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            logger.error("Failed to update configuration: %s", e)
            return CommitResult(False, environment, stage="replace", error=str(e))

        try:
            await self._proxy.reload()
        except CommandError as e:
            logger.error("Proxy reload failed after switching to %s: %s", environment.value, e)
            return CommitResult(
                False,
                environment,
                stage="reload",
                error=f"Proxy reload failed: {e.message}",
                switched=True,
            )

        logger.info("Traffic switched to %s environment", environment.value)
        return CommitResult(True, environment, switched=True)
