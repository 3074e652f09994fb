################################################################################
# TAR-DOCKA
#
# @file:        backup_manager.py
# @module:      tar_docka.cores.backup_manager
# @description: Orchestrates the backup of one compose application directory.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Ablauf: compose file -> volumes -> bind mounts -> archive
# - Missing compose file is fatal, single volumes/mounts only produce warnings
# - .backup_temp is removed on every exit path
################################################################################

"""
Backup orchestration for Tar-Docka.

The application directory is passed explicitly; nothing here depends on the
process working directory.
"""

import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..errors import TarDockaError
from ..helpers.config import TarDockaConfig
from ..helpers.constants import BACKUP_TEMP_DIR, BIND_MOUNT_BACKUP_DIR, VOLUME_BACKUP_DIR
from ..helpers.logging import get_logger
from ..types import RunReport
from .archive_manager import ArchiveManager
from .bind_mount_manager import BindMountManager
from .compose_locator import locate_compose_file, resolve_app_dir
from .docker_runtime import DockerRuntime
from .storage_extractor import extract_storage_refs, normalize_project_name
from .volume_manager import VolumeManager
from .workspace import ScratchWorkspace

logger = get_logger(__name__)


class BackupManager:
    """
    Creates ``<app>_backup_<timestamp>.tar.gz`` inside an application directory.

    Args:
        config: Tar-Docka configuration (defaults when None)
        runtime: Container/volume runtime, DockerRuntime unless given
    """

    def __init__(self, config: Optional[TarDockaConfig] = None, runtime=None):
        self.config = config or TarDockaConfig()
        self.runtime = runtime or DockerRuntime(self.config)
        self.volumes = VolumeManager(self.runtime)
        self.bind_mounts = BindMountManager()
        self.archives = ArchiveManager()
        self.last_report: Optional[RunReport] = None

    def backup(self, app_dir: Path, now: Optional[datetime] = None) -> RunReport:
        """
        Back up compose file, named volumes and bind mounts of app_dir.

        Args:
            app_dir: Application directory containing the compose file
            now: Timestamp for the archive name (current local time if None)

        Returns:
            RunReport with one item per volume and bind mount

        Raises:
            ApplicationDirectoryError: app_dir missing
            ConfigNotFoundError: No compose file
            ArchiveError: Archive could not be written
        """
        start_time = time.time()
        now = now or datetime.now()
        report = RunReport(mode="backup", app_dir=Path(app_dir), timestamp=now)
        self.last_report = report

        try:
            app_dir = resolve_app_dir(app_dir)
            report.app_dir = app_dir
            logger.info(f"Starting backup of {app_dir}")

            compose_file = locate_compose_file(app_dir)
            refs = extract_storage_refs(compose_file.read_text(encoding="utf-8"))
            project_name = refs.project_name or normalize_project_name(app_dir.name)
            logger.debug(f"Found {len(refs.volumes)} volumes and {len(refs.bind_mounts)} bind mounts",
                         extra={"project": project_name})

            with ScratchWorkspace(app_dir, BACKUP_TEMP_DIR) as workspace:
                logger.info("Backing up compose file...")
                shutil.copy2(compose_file, workspace / compose_file.name)

                report.extend(self.volumes.capture(
                    refs.volumes, workspace / VOLUME_BACKUP_DIR, project_name))
                report.extend(self.bind_mounts.capture(
                    refs.bind_mounts, app_dir, workspace / BIND_MOUNT_BACKUP_DIR))

                report.archive = self.archives.build(workspace, app_dir, app_dir.name, now)

        except TarDockaError as e:
            report.error_message = str(e)
            raise
        except OSError as e:
            # z.B. compose file nicht lesbar
            report.error_message = str(e)
            raise TarDockaError(f"Backup failed: {e}") from e
        finally:
            report.duration_seconds = time.time() - start_time

        if report.failures:
            logger.warning(f"Backup completed with {len(report.failures)} failed item(s) "
                           f"in {report.duration_seconds:.2f}s")
        else:
            logger.info(f"Backup completed successfully in {report.duration_seconds:.2f}s")
        logger.info(f"Backup file: {report.archive}")
        return report
