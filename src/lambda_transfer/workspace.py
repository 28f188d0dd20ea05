"""
Temporary workspaces for transfer operations.

Every pipeline run gets its own directory from make_temporary_directory().
Directories are handed to a TemporaryWorkspaceRegistry, which is the only
party that deletes them: at interpreter exit for the process-wide registry,
or when its owner calls cleanup().
"""

import atexit
import logging
import shutil
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from lambda_transfer.config import DEFAULT_TEMP_PREFIX

LOGGER = logging.getLogger(__name__)

_DEFAULT_REGISTRY: Optional["TemporaryWorkspaceRegistry"] = None
_DEFAULT_REGISTRY_LOCK = threading.Lock()


def make_temporary_directory(prefix: str = DEFAULT_TEMP_PREFIX) -> Path:
    """Create a new, unique, caller-writable directory."""
    return Path(tempfile.mkdtemp(prefix=prefix))


class TemporaryWorkspaceRegistry:
    """
    Append-only set of paths to delete at teardown.
    Safe to register into from several threads at once.
    """

    def __init__(self, prefix: str = DEFAULT_TEMP_PREFIX):
        self.prefix = prefix
        self._paths: List[Path] = []
        self._lock = threading.Lock()

    @property
    def paths(self) -> List[Path]:
        with self._lock:
            return list(self._paths)

    def register(self, path: Path) -> None:
        with self._lock:
            self._paths.append(Path(path))
        LOGGER.debug("Registered temporary path %s", path)

    def create_directory(self, prefix: Optional[str] = None) -> Path:
        """
        Provision a temporary directory and register it in one step.
        `prefix` overrides the registry's own prefix for this directory.
        """
        path = make_temporary_directory(prefix or self.prefix)
        self.register(path)
        return path

    def cleanup(self) -> None:
        """
        Delete every registered path. Safe to call more than once.
        """
        with self._lock:
            paths, self._paths = self._paths, []

        for path in paths:
            if not path.exists():
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as exc:
                LOGGER.warning("Failed to remove temporary path %s: %s", path, exc)
                continue
            LOGGER.debug("Removed temporary path %s", path)


def get_default_registry() -> TemporaryWorkspaceRegistry:
    """
    Process-wide registry, cleaned up when the interpreter exits.
    """
    global _DEFAULT_REGISTRY
    with _DEFAULT_REGISTRY_LOCK:
        if _DEFAULT_REGISTRY is None:
            _DEFAULT_REGISTRY = TemporaryWorkspaceRegistry()
            atexit.register(_DEFAULT_REGISTRY.cleanup)
    return _DEFAULT_REGISTRY
