################################################################################
# TAR-DOCKA
#
# @file:        volume_manager.py
# @module:      tar_docka.cores.volume_manager
# @description: Captures and restores named volumes through a helper container.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Containers attached to a volume are stopped around its export
# - Every container we tried to stop is started again, also on failure
# - One volume failing never aborts the others
# - Two volumes mapping to the same archive directory: the second one fails
################################################################################

"""
Volume capture/restore unit.

Each volume ends up as ``volumes/<dir>/backup.tar.gz`` plus ``.volume_info``
holding the exact runtime volume name, which restore needs verbatim so that
compose reattaches the same volume.
"""

import re
from pathlib import Path
from typing import Dict, List, Optional

from ..helpers.constants import VOLUME_INFO_FILE, VOLUME_PAYLOAD_FILE
from ..helpers.logging import get_logger
from ..helpers.ui_utils import SubprocessError
from ..types import (
    ContainerInfo,
    ItemResult,
    NamedVolumeRef,
    STATUS_FAILED,
    STATUS_OK,
    STATUS_SKIPPED,
)

logger = get_logger(__name__)

KIND_VOLUME = "volume"


def volume_dir_name(volume_name: str) -> str:
    """Directory name for a volume inside the archive."""
    return re.sub(r"[^A-Za-z0-9._-]+", "_", volume_name)


class VolumeManager:
    """Capture and restore of named volumes."""

    def __init__(self, runtime):
        """
        Args:
            runtime: Object providing the container/volume operations
                (see cores.docker_runtime.DockerRuntime)
        """
        self.runtime = runtime

    # =========================================================================
    # Capture
    # =========================================================================

    def resolve_volume_name(self, ref: NamedVolumeRef, project_name: Optional[str]) -> Optional[str]:
        """First candidate name that exists in the runtime, or None."""
        for candidate in ref.candidate_names(project_name):
            if self.runtime.volume_exists(candidate):
                return candidate
        return None

    def capture(self, volumes: List[NamedVolumeRef], dest_dir: Path,
                project_name: Optional[str] = None) -> List[ItemResult]:
        """
        Export every volume into dest_dir.

        Args:
            volumes: Volume references from the compose file
            dest_dir: ``<workspace>/volumes``
            project_name: Compose project name used to resolve prefixed names

        Returns:
            One ItemResult per volume
        """
        results: List[ItemResult] = []
        if not volumes:
            return results

        logger.info("Backing up Docker volumes...")
        dest_dir.mkdir(parents=True, exist_ok=True)
        # archive directory -> volume stored in it
        claimed: Dict[str, str] = {}
        for ref in volumes:
            results.append(self._capture_one(ref, dest_dir, project_name, claimed))
        return results

    def _capture_one(self, ref: NamedVolumeRef, dest_dir: Path,
                     project_name: Optional[str], claimed: Dict[str, str]) -> ItemResult:
        logger.info(f"Processing Docker volume: {ref.key}", extra={"volume": ref.key})

        try:
            name = self.resolve_volume_name(ref, project_name)
            if name is not None:
                mountpoint = self.runtime.volume_mountpoint(name)
        except SubprocessError as e:
            logger.error(f"  - Could not inspect volume {ref.key}: {e}", extra={"volume": ref.key})
            return ItemResult(KIND_VOLUME, ref.key, STATUS_FAILED, str(e))

        if name is None:
            message = f"volume not found (tried {', '.join(ref.candidate_names(project_name))})"
            logger.warning(f"  - Skipping volume {ref.key}: {message}")
            return ItemResult(KIND_VOLUME, ref.key, STATUS_SKIPPED, message)

        dir_name = volume_dir_name(name)
        owner = claimed.get(dir_name)
        if owner == name:
            logger.info(f"  - Volume {name} already backed up")
            return ItemResult(KIND_VOLUME, name, STATUS_SKIPPED, "already backed up")
        if owner is not None:
            message = f"archive directory {dir_name} already used by volume {owner}"
            logger.error(f"  - Cannot back up volume {name}: {message}", extra={"volume": name})
            return ItemResult(KIND_VOLUME, name, STATUS_FAILED, message)
        claimed[dir_name] = name

        if mountpoint:
            logger.info(f"  - Found volume path: {mountpoint}", extra={"volume": name})

        volume_dir = dest_dir / dir_name
        volume_dir.mkdir(parents=True, exist_ok=True)

        try:
            containers = self.runtime.containers_using_volume(name)
        except SubprocessError as e:
            logger.warning(f"  - Could not list containers for volume {name}: {e}")
            containers = []

        stopped = self._stop_containers(containers)
        try:
            self.runtime.export_volume(name, volume_dir, VOLUME_PAYLOAD_FILE)
            (volume_dir / VOLUME_INFO_FILE).write_text(name + "\n", encoding="utf-8")
        except (SubprocessError, OSError) as e:
            logger.error(f"  - Failed to back up volume {name}: {e}", extra={"volume": name})
            return ItemResult(KIND_VOLUME, name, STATUS_FAILED, str(e))
        finally:
            self._start_containers(stopped)

        logger.info(f"  - Volume {name} backed up", extra={"volume": name})
        return ItemResult(KIND_VOLUME, name, STATUS_OK)

    def _stop_containers(self, containers: List[ContainerInfo]) -> List[ContainerInfo]:
        """
        Stop running containers, best effort.

        Returns:
            Every container a stop was attempted on (including failed ones)
        """
        attempted = []
        for container in containers:
            if not container.is_running:
                continue
            attempted.append(container)
            logger.info(f"  - Stopping container {container.name} temporarily...")
            try:
                self.runtime.stop_container(container.name)
            except SubprocessError as e:
                logger.warning(f"  - Failed to stop container {container.name}: {e}",
                               extra={"container": container.name})
        return attempted

    def _start_containers(self, containers: List[ContainerInfo]) -> None:
        for container in containers:
            logger.info(f"  - Restarting container {container.name}...")
            try:
                self.runtime.start_container(container.name)
            except SubprocessError as e:
                logger.warning(f"  - Failed to restart container {container.name}: {e}",
                               extra={"container": container.name})

    # =========================================================================
    # Restore
    # =========================================================================

    def restore(self, volumes_dir: Path) -> List[ItemResult]:
        """
        Restore every archived volume directory below volumes_dir.

        Returns:
            One ItemResult per archived volume directory
        """
        results: List[ItemResult] = []
        if not volumes_dir.is_dir():
            return results

        logger.info("Restoring Docker volumes...")
        for vol_dir in sorted(p for p in volumes_dir.iterdir() if p.is_dir()):
            results.append(self._restore_one(vol_dir))
        return results

    def _restore_one(self, vol_dir: Path) -> ItemResult:
        info_file = vol_dir / VOLUME_INFO_FILE
        if not info_file.is_file():
            message = "missing .volume_info, original volume name unknown"
            logger.warning(f"  - Could not determine original volume name for {vol_dir.name}")
            return ItemResult(KIND_VOLUME, vol_dir.name, STATUS_SKIPPED, message)

        name = info_file.read_text(encoding="utf-8").strip()
        if not name:
            logger.warning(f"  - Empty .volume_info in {vol_dir.name}")
            return ItemResult(KIND_VOLUME, vol_dir.name, STATUS_SKIPPED, "empty .volume_info")

        if not (vol_dir / VOLUME_PAYLOAD_FILE).is_file():
            logger.error(f"  - No {VOLUME_PAYLOAD_FILE} for volume {name}")
            return ItemResult(KIND_VOLUME, name, STATUS_FAILED, f"missing {VOLUME_PAYLOAD_FILE}")

        logger.info(f"  - Restoring volume {name}", extra={"volume": name})
        try:
            if not self.runtime.volume_exists(name):
                logger.info(f"  - Creating Docker volume: {name}")
                self.runtime.create_volume(name)
            logger.info(f"  - Restoring data into volume {name}...")
            self.runtime.import_volume(name, vol_dir, VOLUME_PAYLOAD_FILE)
        except SubprocessError as e:
            logger.error(f"  - Failed to restore volume {name}: {e}", extra={"volume": name})
            return ItemResult(KIND_VOLUME, name, STATUS_FAILED, str(e))

        return ItemResult(KIND_VOLUME, name, STATUS_OK)
