"""Scratch workspace (.backup_temp / .restore_temp) scoped to one run."""

import shutil
import sys
from pathlib import Path
from typing import Optional

from ..helpers.logging import get_logger

logger = get_logger(__name__)


class ScratchWorkspace:
    """
    Context manager owning a scratch directory inside the application directory.

    The directory is created on enter (a stale one left by an interrupted run
    is removed first) and removed on exit, whether the block succeeded or not.

    Example:
        >>> with ScratchWorkspace(app_dir, ".backup_temp") as ws:
        ...     (ws / "volumes").mkdir()
    """

    def __init__(self, app_dir: Path, name: str):
        self.path = Path(app_dir) / name
        self._active = False

    def __enter__(self) -> Path:
        if self.path.exists():
            logger.warning(f"Removing stale temporary directory: {self.path}")
            self._remove()
        logger.info(f"Creating temporary directory: {self.path}")
        self.path.mkdir(parents=True)
        self._active = True
        return self.path

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if self._active:
            logger.info("Cleaning up temporary directory...")
            self._remove()
            self._active = False
        # never swallow the run's exception
        return None

    def _remove(self) -> None:
        if sys.version_info >= (3, 12):
            shutil.rmtree(self.path, onexc=lambda func, path, exc: _log_failure(path, exc))
        else:
            shutil.rmtree(self.path, onerror=lambda func, path, info: _log_failure(path, info[1]))


def _log_failure(path, exc) -> None:
    logger.error(f"Could not remove {path}: {exc}")
