"""
Docker runtime access for Tar-Docka.

Thin wrapper around the docker CLI: volume inspection/creation, containers
attached to a volume, stop/start, and the disposable helper container that
reads or writes a volume's data next to a host directory.
"""

import json
from pathlib import Path
from typing import List, Optional

from ..helpers.config import TarDockaConfig
from ..helpers.constants import (
    DOCKER_QUERY_TIMEOUT,
    HELPER_BACKUP_MOUNT,
    HELPER_VOLUME_MOUNT,
    VOLUME_PAYLOAD_FILE,
)
from ..helpers.logging import get_logger
from ..helpers.ui_utils import SubprocessError, run_command
from ..types import ContainerInfo

logger = get_logger(__name__)

# docker volume inspect stderr for an unknown volume (lowercased)
NO_SUCH_VOLUME = "no such volume"


class DockerRuntime:
    """Container/volume operations needed by the volume unit."""

    def __init__(self, config: Optional[TarDockaConfig] = None):
        self.config = config or TarDockaConfig()

    # ---------------- Volumes ----------------

    def inspect_volume(self, name: str) -> Optional[dict]:
        """
        Return `docker volume inspect` data or None if the volume does not exist.

        Raises:
            SubprocessError: docker failed for another reason (timeout, daemon down)
        """
        try:
            result = run_command(
                ["docker", "volume", "inspect", name],
                f"Inspecting volume {name}",
                timeout=DOCKER_QUERY_TIMEOUT,
            )
        except SubprocessError as e:
            if NO_SUCH_VOLUME not in (e.stderr or "").lower():
                raise
            logger.debug(f"Volume {name} not found: {e.stderr.strip()}")
            return None
        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning(f"Unexpected output from docker volume inspect {name}")
            return None
        if isinstance(data, list) and data:
            return data[0]
        return None

    def volume_exists(self, name: str) -> bool:
        return self.inspect_volume(name) is not None

    def volume_mountpoint(self, name: str) -> Optional[str]:
        data = self.inspect_volume(name)
        if not data:
            return None
        return data.get("Mountpoint") or None

    def create_volume(self, name: str) -> None:
        run_command(
            ["docker", "volume", "create", name],
            f"Creating volume {name}",
            timeout=DOCKER_QUERY_TIMEOUT,
        )

    # ---------------- Containers ----------------

    def containers_using_volume(self, name: str) -> List[ContainerInfo]:
        """All containers (running or not) that mount the volume."""
        result = run_command(
            [
                "docker", "ps", "-a",
                "--filter", f"volume={name}",
                "--format", "{{.ID}};{{.Names}};{{.State}}",
            ],
            f"Listing containers using volume {name}",
            timeout=DOCKER_QUERY_TIMEOUT,
        )
        containers = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            parts = line.split(";")
            if len(parts) < 2:
                continue
            state = parts[2] if len(parts) > 2 else ""
            containers.append(
                ContainerInfo(id=parts[0], name=parts[1], is_running=(state == "running"))
            )
        return containers

    def stop_container(self, name: str) -> None:
        run_command(
            ["docker", "stop", "-t", str(self.config.stop_timeout), name],
            f"Stopping container {name}",
            timeout=self.config.stop_timeout + DOCKER_QUERY_TIMEOUT,
        )

    def start_container(self, name: str) -> None:
        run_command(
            ["docker", "start", name],
            f"Starting container {name}",
            timeout=DOCKER_QUERY_TIMEOUT * 2,
        )

    # ---------------- Helper container ----------------

    def export_volume(self, volume: str, dest_dir: Path,
                      payload_name: str = VOLUME_PAYLOAD_FILE) -> None:
        """
        Write the volume contents as a gzipped tar into dest_dir.

        The volume is mounted read-only; only the helper container touches
        the driver-managed data.
        """
        run_command(
            [
                "docker", "run", "--rm",
                "-v", f"{volume}:{HELPER_VOLUME_MOUNT}:ro",
                "-v", f"{Path(dest_dir).resolve()}:{HELPER_BACKUP_MOUNT}",
                self.config.helper_image,
                "tar", "czf", f"{HELPER_BACKUP_MOUNT}/{payload_name}",
                "-C", HELPER_VOLUME_MOUNT, ".",
            ],
            f"Exporting volume {volume}",
            timeout=self.config.helper_timeout,
        )

    def import_volume(self, volume: str, src_dir: Path,
                      payload_name: str = VOLUME_PAYLOAD_FILE) -> None:
        """
        Replace the volume contents with the payload from src_dir.

        Existing data is removed first so the volume ends up exactly as
        archived.
        """
        script = (
            f"find {HELPER_VOLUME_MOUNT} -mindepth 1 -maxdepth 1 -exec rm -rf {{}} + && "
            f"tar xzf {HELPER_BACKUP_MOUNT}/{payload_name} -C {HELPER_VOLUME_MOUNT}"
        )
        run_command(
            [
                "docker", "run", "--rm",
                "-v", f"{volume}:{HELPER_VOLUME_MOUNT}",
                "-v", f"{Path(src_dir).resolve()}:{HELPER_BACKUP_MOUNT}:ro",
                self.config.helper_image,
                "sh", "-c", script,
            ],
            f"Importing volume {volume}",
            timeout=self.config.helper_timeout,
        )
