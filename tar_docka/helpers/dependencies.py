"""
Dependency checks for Tar-Docka.

Verifies that the docker CLI and one of the compose variants are available
before a backup or restore starts.
"""

import shutil
from typing import Dict, List, Optional

from .constants import COMPOSE_V1, COMPOSE_V2, DOCKER_QUERY_TIMEOUT
from .logging import get_logger
from .ui_utils import SubprocessError, run_command
from ..errors import RequirementError

logger = get_logger(__name__)


class DependencyManager:
    """Checks system dependencies for Tar-Docka."""

    DEPENDENCIES = {
        'docker': {
            'description': 'Docker container runtime',
            'required': True,
        },
        'compose': {
            'description': "Docker Compose ('docker compose' or 'docker-compose')",
            'required': True,
        },
    }

    def check_docker(self) -> bool:
        """Docker CLI present and daemon reachable."""
        if not shutil.which('docker'):
            return False
        try:
            run_command(
                ['docker', 'version', '--format', '{{.Server.Version}}'],
                "Checking docker daemon",
                timeout=DOCKER_QUERY_TIMEOUT,
            )
            return True
        except SubprocessError as e:
            logger.debug(f"Docker not usable: {e}")
            return False

    def detect_compose(self) -> Optional[str]:
        """
        Detect the available compose variant.

        Returns:
            COMPOSE_V2 for 'docker compose', COMPOSE_V1 for 'docker-compose',
            None when neither works
        """
        if shutil.which('docker'):
            try:
                run_command(['docker', 'compose', 'version'], "Checking docker compose",
                            timeout=DOCKER_QUERY_TIMEOUT)
                return COMPOSE_V2
            except SubprocessError:
                pass
        if shutil.which('docker-compose'):
            try:
                run_command(['docker-compose', 'version'], "Checking docker-compose",
                            timeout=DOCKER_QUERY_TIMEOUT)
                return COMPOSE_V1
            except SubprocessError:
                pass
        return None

    def check_compose(self) -> bool:
        return self.detect_compose() is not None

    def get_status(self) -> Dict[str, bool]:
        """Status of every dependency."""
        return {
            'docker': self.check_docker(),
            'compose': self.check_compose(),
        }

    def get_missing(self) -> List[str]:
        """Names of missing required dependencies."""
        status = self.get_status()
        return [
            name for name, meta in self.DEPENDENCIES.items()
            if meta['required'] and not status.get(name, False)
        ]

    def check_requirements(self) -> None:
        """
        Raise if a required dependency is missing.

        Raises:
            RequirementError: Docker or Docker Compose not available
        """
        logger.info("Checking requirements...")
        missing = self.get_missing()
        if missing:
            details = ", ".join(self.DEPENDENCIES[m]['description'] for m in missing)
            raise RequirementError(f"Missing requirements: {details}")
        logger.info("Requirements satisfied.")
