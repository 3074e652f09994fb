"""Locate the application directory and its compose file."""

from pathlib import Path
from typing import Optional

from ..errors import ApplicationDirectoryError, ConfigNotFoundError
from ..helpers.constants import COMPOSE_FILENAMES
from ..helpers.logging import get_logger

logger = get_logger(__name__)


def find_compose_file(app_dir: Path) -> Optional[Path]:
    """Return the active compose file (.yaml before .yml) or None."""
    for filename in COMPOSE_FILENAMES:
        candidate = Path(app_dir) / filename
        if candidate.is_file():
            return candidate
    return None


def locate_compose_file(app_dir: Path) -> Path:
    """
    Return the active compose file.

    Raises:
        ConfigNotFoundError: Neither docker-compose.yaml nor docker-compose.yml exists
    """
    compose_file = find_compose_file(app_dir)
    if compose_file is None:
        raise ConfigNotFoundError(
            f"No {' or '.join(COMPOSE_FILENAMES)} found in {app_dir}."
        )
    logger.info(f"Found compose file: {compose_file}")
    return compose_file


def resolve_app_dir(app_dir) -> Path:
    """
    Absolute application directory.

    Raises:
        ApplicationDirectoryError: Path does not exist or is not a directory
    """
    path = Path(app_dir).expanduser()
    if not path.is_dir():
        raise ApplicationDirectoryError(f"Directory {app_dir} does not exist.")
    return path.resolve()
