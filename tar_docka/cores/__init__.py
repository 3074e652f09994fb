"""Core business logic modules for Tar-Docka."""

from .archive_manager import ArchiveManager
from .backup_manager import BackupManager
from .bind_mount_manager import BindMountManager, classify_mount
from .compose_locator import find_compose_file, locate_compose_file, resolve_app_dir
from .compose_manager import ComposeProject
from .docker_runtime import DockerRuntime
from .restore_manager import RestoreManager
from .storage_extractor import extract_storage_refs
from .volume_manager import VolumeManager
from .workspace import ScratchWorkspace

__all__ = [
    'ArchiveManager',
    'BackupManager',
    'BindMountManager',
    'classify_mount',
    'find_compose_file',
    'locate_compose_file',
    'resolve_app_dir',
    'ComposeProject',
    'DockerRuntime',
    'RestoreManager',
    'extract_storage_refs',
    'VolumeManager',
    'ScratchWorkspace',
]
