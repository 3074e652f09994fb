################################################################################
# TAR-DOCKA
#
# @file:        __init__.py
# @module:      tar_docka
# @description: Exposes version, logging, and the backup/restore managers.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Tar-Docka: backup and restore of Docker Compose applications.

Compose file, named volumes and bind mounts of one application directory
are packed into a single ``<app>_backup_<timestamp>.tar.gz`` next to the
compose file and can be restored from there.
"""

from .helpers.constants import VERSION

__version__ = VERSION
__author__ = "Tar-Docka Development Team"

from .helpers.logging import get_logger, log_manager, setup_logging
from .types import (
    NamedVolumeRef,
    BindMountRef,
    StorageRefs,
    ContainerInfo,
    ItemResult,
    RunReport,
)
from .cores.backup_manager import BackupManager
from .cores.restore_manager import RestoreManager

__all__ = [
    "VERSION",
    "NamedVolumeRef",
    "BindMountRef",
    "StorageRefs",
    "ContainerInfo",
    "ItemResult",
    "RunReport",
    "BackupManager",
    "RestoreManager",
    "get_logger",
    "log_manager",
    "setup_logging",
]
