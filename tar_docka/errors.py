################################################################################
# TAR-DOCKA
#
# @file:        errors.py
# @module:      tar_docka.errors
# @description: Exception taxonomy for backup and restore runs.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Fatal errors derive from TarDockaError and stop the run
# - PartialCopyFailure and ContainerLifecycleError are usually caught per item
################################################################################

"""Errors raised by the Tar-Docka engine."""


class TarDockaError(Exception):
    """Base class for all engine errors."""
    pass


class ConfigError(TarDockaError):
    """Configuration-related errors"""
    pass


class ApplicationDirectoryError(TarDockaError):
    """Application directory does not exist or is not a directory."""
    pass


class ConfigNotFoundError(TarDockaError):
    """No docker-compose.yaml / docker-compose.yml in the application directory."""
    pass


class NoBackupFoundError(TarDockaError):
    """No backup archive found in the application directory."""
    pass


class AmbiguousSelectionError(TarDockaError):
    """Several archives exist and no valid selection was made."""
    pass


class CorruptArchiveError(TarDockaError):
    """Archive cannot be read or has an unexpected layout."""
    pass


class ArchiveError(TarDockaError):
    """Archive could not be written."""
    pass


class RequirementError(TarDockaError):
    """Docker or Docker Compose is not available."""
    pass


class ContainerLifecycleError(TarDockaError):
    """Stopping or starting containers failed."""
    pass


class PartialCopyFailure(TarDockaError):
    """Some files of a volume or bind mount could not be copied."""

    def __init__(self, message: str, failed_paths=None):
        super().__init__(message)
        self.failed_paths = list(failed_paths or [])
