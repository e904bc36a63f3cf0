"""File-backed persistence for switchover state.

Every write goes to a sibling ``.tmp`` file first and is then renamed over
the target, so a concurrent reader sees either the old or the new content
and never a partial write.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from .models import MigrationState

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def temp_path_for(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(path.name + ".tmp")


def atomic_write_text(path: PathLike, content: str) -> None:
    """Atomic write: write to .tmp then rename. Raises OSError on failure."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = temp_path_for(path)
    try:
        with open(tmp_file, "w") as f:
            f.write(content)
        tmp_file.replace(path)
    except OSError:
        tmp_file.unlink(missing_ok=True)
        raise


def atomic_write_json(path: PathLike, payload: Any) -> None:
    atomic_write_text(path, json.dumps(payload, indent=2, default=str))


def read_json(path: PathLike) -> Optional[Any]:
    """Load JSON from disk; None if the file is missing or corrupt."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        with open(path) as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.error("Corrupt or unreadable file %s, ignoring: %s", path, e)
        return None


class MigrationStateStore:
    """Durable record of the migration state machine.

    Thread-safe: saves are serialized by a lock so two writers never race
    on the shared temp file.

    Args:
        path: Location of the migration state JSON file.
    """

    def __init__(self, path: PathLike) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[MigrationState]:
        """Return the persisted state, or None if absent or unreadable."""
        data = read_json(self._path)
        if data is None:
            return None
        try:
            return MigrationState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Malformed migration state in %s, ignoring: %s", self._path, e)
            return None

    def save(self, state: MigrationState) -> bool:
        """Persist the state atomically. Returns False if the write failed."""
        with self._lock:
            try:
                atomic_write_json(self._path, state.to_dict())
                return True
            except OSError as e:
                logger.error("Failed to persist migration state: %s", e)
                return False
