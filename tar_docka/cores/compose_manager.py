"""
Compose project lifecycle (down/up) for restore.

Detects 'docker compose' (v2) first and falls back to 'docker-compose' (v1).
Commands always run with the application directory as working directory.
"""

from pathlib import Path
from typing import List, Optional

from ..helpers.config import TarDockaConfig
from ..helpers.constants import COMPOSE_AUTO, COMPOSE_V1, COMPOSE_V2
from ..helpers.dependencies import DependencyManager
from ..helpers.logging import get_logger
from ..helpers.ui_utils import run_command

logger = get_logger(__name__)


class ComposeProject:
    """The application's compose project, keyed by its compose file."""

    def __init__(self, compose_file: Path, config: Optional[TarDockaConfig] = None,
                 variant: Optional[str] = None):
        self.compose_file = Path(compose_file)
        self.app_dir = self.compose_file.parent
        self.config = config or TarDockaConfig()
        self._variant = variant

    @property
    def variant(self) -> str:
        if self._variant is None:
            configured = self.config.compose_command
            if configured != COMPOSE_AUTO:
                self._variant = configured
            else:
                # Fallback auf v1, run_command meldet dann einen klaren Fehler
                self._variant = DependencyManager().detect_compose() or COMPOSE_V1
            logger.debug(f"Using compose variant: {self._variant}")
        return self._variant

    def _base_command(self) -> List[str]:
        if self.variant == COMPOSE_V2:
            return ["docker", "compose", "-f", str(self.compose_file)]
        return ["docker-compose", "-f", str(self.compose_file)]

    def down(self) -> None:
        """Stop and remove the project's containers (volumes are kept)."""
        run_command(
            self._base_command() + ["down"],
            "Bringing compose project down",
            timeout=self.config.compose_timeout,
            cwd=str(self.app_dir),
        )

    def up(self) -> None:
        """Start the project detached."""
        run_command(
            self._base_command() + ["up", "-d"],
            "Bringing compose project up",
            timeout=self.config.compose_timeout,
            cwd=str(self.app_dir),
        )
