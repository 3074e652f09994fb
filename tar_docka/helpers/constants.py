"""
Constants used throughout the Tar-Docka application.

This module defines all constant values used across different modules
to ensure consistency and ease of maintenance.
"""

from pathlib import Path

# Version information
VERSION = "1.0.0"

# Default config paths (JSON)
DEFAULT_CONFIG_PATHS = {
    'root': Path('/etc/tar-docka/config.json'),
    'user': Path.home() / '.config' / 'tar-docka' / 'config.json'
}
CONFIG_ENV_VAR = 'TAR_DOCKA_CONFIG'

# Compose files, in lookup order (.yaml wins over .yml)
COMPOSE_FILENAMES = ('docker-compose.yaml', 'docker-compose.yml')

# Scratch workspaces inside the application directory
BACKUP_TEMP_DIR = '.backup_temp'
RESTORE_TEMP_DIR = '.restore_temp'

# Archive layout
VOLUME_BACKUP_DIR = 'volumes'
BIND_MOUNT_BACKUP_DIR = 'bind_mounts'
EXTERNAL_MOUNT_DIR = 'external'
VOLUME_INFO_FILE = '.volume_info'
MOUNT_INFO_FILE = '.mount_info'
MOUNT_KIND_FILE = '.mount_kind'
VOLUME_PAYLOAD_FILE = 'backup.tar.gz'

# Archive naming: {app}_backup_{YYYYMMDD_HHMMSS}.tar.gz
ARCHIVE_INFIX = '_backup_'
ARCHIVE_SUFFIX = '.tar.gz'
ARCHIVE_GLOB = f'*{ARCHIVE_INFIX}*{ARCHIVE_SUFFIX}'
ARCHIVE_PARTIAL_SUFFIX = '.partial'
TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'
ARCHIVE_NAME_PATTERN = r'^(?P<app>.+)_backup_(?P<ts>\d{8}_\d{6})\.tar\.gz$'

# Helper container used for volume export/import
DEFAULT_HELPER_IMAGE = 'alpine'
HELPER_VOLUME_MOUNT = '/data'
HELPER_BACKUP_MOUNT = '/backup'

# Compose CLI variants
COMPOSE_V2 = 'v2'   # docker compose
COMPOSE_V1 = 'v1'   # docker-compose
COMPOSE_AUTO = 'auto'

# Timeouts (in seconds)
CONTAINER_STOP_TIMEOUT = 30
HELPER_OPERATION_TIMEOUT = 3600  # 1 hour
COMPOSE_TIMEOUT = 300
DOCKER_QUERY_TIMEOUT = 30

# Logging
LOG_FORMAT = '%(asctime)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
