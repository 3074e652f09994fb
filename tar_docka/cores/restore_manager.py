################################################################################
# TAR-DOCKA
#
# @file:        restore_manager.py
# @module:      tar_docka.cores.restore_manager
# @description: Restores a compose application directory from one of its archives.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Ablauf: select archive -> extract -> compose file -> down -> bind mounts
#   -> volumes -> up
# - Several archives need --index or an interactive prompt
# - compose up failing is the terminal error of the run, .restore_temp is
#   removed before it propagates
################################################################################

"""Restore orchestration for Tar-Docka."""

import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import ContainerLifecycleError, TarDockaError
from ..helpers.config import TarDockaConfig
from ..helpers.constants import BIND_MOUNT_BACKUP_DIR, RESTORE_TEMP_DIR, VOLUME_BACKUP_DIR
from ..helpers.logging import get_logger
from ..helpers.ui_utils import SubprocessError
from ..types import ItemResult, RunReport, STATUS_FAILED, STATUS_OK, STATUS_SKIPPED
from .archive_manager import ArchiveManager, SelectionPrompt
from .bind_mount_manager import BindMountManager
from .compose_locator import find_compose_file, resolve_app_dir
from .compose_manager import ComposeProject
from .docker_runtime import DockerRuntime
from .volume_manager import VolumeManager
from .workspace import ScratchWorkspace

logger = get_logger(__name__)

KIND_COMPOSE = "compose"


class RestoreManager:
    """
    Restores compose file, bind mounts and named volumes from an archive.

    Args:
        config: Tar-Docka configuration (defaults when None)
        runtime: Container/volume runtime, DockerRuntime unless given
        compose_factory: Builds the compose project for a compose file
            (ComposeProject unless given)
        prompt: Asks which archive to use when several exist
    """

    def __init__(
        self,
        config: Optional[TarDockaConfig] = None,
        runtime=None,
        compose_factory: Optional[Callable[[Path], object]] = None,
        prompt: Optional[SelectionPrompt] = None,
    ):
        self.config = config or TarDockaConfig()
        self.runtime = runtime or DockerRuntime(self.config)
        self.compose_factory = compose_factory or (lambda f: ComposeProject(f, self.config))
        self.prompt = prompt
        self.volumes = VolumeManager(self.runtime)
        self.bind_mounts = BindMountManager()
        self.archives = ArchiveManager()
        self.last_report: Optional[RunReport] = None

    def restore(self, app_dir: Path, selection: Optional[Union[int, str]] = None) -> RunReport:
        """
        Restore app_dir from its newest or the selected archive.

        Args:
            app_dir: Application directory holding the archives
            selection: 1-based archive index (newest first)

        Returns:
            RunReport with one item per restored volume, mount and compose call

        Raises:
            ApplicationDirectoryError: app_dir missing
            NoBackupFoundError: No archive in app_dir
            AmbiguousSelectionError: Several archives, no valid selection
            CorruptArchiveError: Archive unreadable
            ContainerLifecycleError: compose up failed
        """
        start_time = time.time()
        report = RunReport(mode="restore", app_dir=Path(app_dir), timestamp=datetime.now())
        self.last_report = report

        try:
            app_dir = resolve_app_dir(app_dir)
            report.app_dir = app_dir
            logger.info(f"Starting restore of {app_dir}")

            archives = self.archives.list_archives(app_dir)
            archive = self.archives.select_archive(archives, selection, self.prompt)
            report.archive = archive
            logger.info(f"Using backup file: {archive.name}")

            with ScratchWorkspace(app_dir, RESTORE_TEMP_DIR) as workspace:
                self.archives.extract(archive, workspace)
                root = self.archives.locate_root(workspace)

                compose_file = self._restore_compose_file(root, app_dir)
                project = self.compose_factory(compose_file) if compose_file else None
                if project is None:
                    report.items.append(ItemResult(KIND_COMPOSE, "down", STATUS_SKIPPED,
                                                   "no compose file"))
                else:
                    report.items.append(self._compose_down(project))

                report.extend(self.bind_mounts.restore(root / BIND_MOUNT_BACKUP_DIR, app_dir))
                report.extend(self.volumes.restore(root / VOLUME_BACKUP_DIR))

                if project is not None:
                    report.items.append(self._compose_up(project))

        except TarDockaError as e:
            report.error_message = str(e)
            raise
        except OSError as e:
            report.error_message = str(e)
            raise TarDockaError(f"Restore failed: {e}") from e
        finally:
            report.duration_seconds = time.time() - start_time

        if report.failures:
            logger.warning(f"Restore completed with {len(report.failures)} failed item(s) "
                           f"in {report.duration_seconds:.2f}s")
        else:
            logger.info(f"Restore completed successfully in {report.duration_seconds:.2f}s")
        return report

    # ---------------- Steps ----------------

    def _restore_compose_file(self, root: Path, app_dir: Path) -> Optional[Path]:
        """Copy the archived compose file back, fall back to the one in app_dir."""
        archived = find_compose_file(root)
        if archived is not None:
            logger.info("Restoring compose file...")
            target = app_dir / archived.name
            shutil.copy2(archived, target)
            return target

        logger.warning("No compose file found in backup")
        existing = find_compose_file(app_dir)
        if existing is None:
            logger.warning("No compose file in application directory, skipping container restart")
        return existing

    def _compose_down(self, project) -> ItemResult:
        logger.info("Stopping containers...")
        try:
            project.down()
        except SubprocessError as e:
            logger.warning(f"Failed to stop compose project: {e}")
            return ItemResult(KIND_COMPOSE, "down", STATUS_FAILED, str(e))
        return ItemResult(KIND_COMPOSE, "down", STATUS_OK)

    def _compose_up(self, project) -> ItemResult:
        logger.info("Starting containers...")
        try:
            project.up()
        except SubprocessError as e:
            self.last_report.items.append(ItemResult(KIND_COMPOSE, "up", STATUS_FAILED, str(e)))
            raise ContainerLifecycleError(f"Failed to start containers: {e}") from e
        return ItemResult(KIND_COMPOSE, "up", STATUS_OK)
