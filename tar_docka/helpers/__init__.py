"""Helper modules and utilities for Tar-Docka."""

from .config import TarDockaConfig, load_config, find_config_file
from .constants import VERSION, DEFAULT_CONFIG_PATHS
from .dependencies import DependencyManager
from .logging import get_logger, log_manager
from .ui_utils import SubprocessError, run_command

__all__ = [
    'TarDockaConfig',
    'load_config',
    'find_config_file',
    'VERSION',
    'DEFAULT_CONFIG_PATHS',
    'DependencyManager',
    'get_logger',
    'log_manager',
    'SubprocessError',
    'run_command',
]
