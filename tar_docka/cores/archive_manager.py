################################################################################
# TAR-DOCKA
#
# @file:        archive_manager.py
# @module:      tar_docka.cores.archive_manager
# @description: Builds, lists, selects and unpacks backup archives.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Archive name: {app}_backup_{YYYYMMDD_HHMMSS}.tar.gz, newest first
# - Written as .partial and renamed, so a failed run leaves no half archive
# - Several archives require an explicit 1-based selection
# - Extraction keeps symlinks, modes and owners; member names stay inside dest
################################################################################

"""Archive builder/unpacker."""

import os
import re
import tarfile
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Union

from ..errors import (
    AmbiguousSelectionError,
    ArchiveError,
    CorruptArchiveError,
    NoBackupFoundError,
)
from ..helpers.constants import (
    ARCHIVE_GLOB,
    ARCHIVE_INFIX,
    ARCHIVE_NAME_PATTERN,
    ARCHIVE_PARTIAL_SUFFIX,
    ARCHIVE_SUFFIX,
    BACKUP_TEMP_DIR,
    TIMESTAMP_FORMAT,
)
from ..helpers.logging import get_logger

logger = get_logger(__name__)

_ARCHIVE_RE = re.compile(ARCHIVE_NAME_PATTERN)

# Receives the archives (newest first), returns the raw user input
SelectionPrompt = Callable[[List[Path]], str]


def archive_timestamp(path: Path) -> Optional[datetime]:
    """Timestamp embedded in an archive name, None if the name does not match."""
    match = _ARCHIVE_RE.match(Path(path).name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group("ts"), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def _check_member(member: tarfile.TarInfo) -> None:
    names = [member.name]
    if member.islnk():
        names.append(member.linkname)
    for name in names:
        pure = PurePosixPath(name)
        if pure.is_absolute() or ".." in pure.parts:
            raise CorruptArchiveError(f"Unsafe path in archive: {name}")


def _member_filter(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo:
    # tar_filter keeps symlink targets, permission bits and owners
    _check_member(member)
    return tarfile.tar_filter(member, dest_path)


class ArchiveManager:
    """Creates and reads ``*_backup_*.tar.gz`` archives in an application directory."""

    @staticmethod
    def archive_name(app_name: str, now: datetime) -> str:
        return f"{app_name}{ARCHIVE_INFIX}{now.strftime(TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"

    # =========================================================================
    # Build
    # =========================================================================

    def build(self, workspace: Path, app_dir: Path, app_name: str, now: datetime) -> Path:
        """
        Pack the workspace into ``<app_dir>/<app>_backup_<ts>.tar.gz``.

        The archive is rooted at the workspace directory name, so extracting
        it reproduces the workspace layout.

        Raises:
            ArchiveError: Archive exists already or could not be written
        """
        archive = Path(app_dir) / self.archive_name(app_name, now)
        if archive.exists():
            raise ArchiveError(f"Backup archive already exists: {archive}")

        partial = archive.with_name(archive.name + ARCHIVE_PARTIAL_SUFFIX)
        logger.info(f"Creating backup archive: {archive}")
        try:
            with tarfile.open(partial, "w:gz") as tar:
                tar.add(str(workspace), arcname=Path(workspace).name)
            os.replace(partial, archive)
        except (OSError, tarfile.TarError) as e:
            try:
                partial.unlink()
            except FileNotFoundError:
                pass
            raise ArchiveError(f"Could not create archive {archive}: {e}") from e
        return archive

    # =========================================================================
    # Selection
    # =========================================================================

    def list_archives(self, app_dir: Path) -> List[Path]:
        """Archives directly inside app_dir, newest first."""
        archives = []
        for candidate in Path(app_dir).glob(ARCHIVE_GLOB):
            if not candidate.is_file():
                continue
            ts = archive_timestamp(candidate)
            if ts is None:
                logger.debug(f"Ignoring file with unexpected archive name: {candidate.name}")
                continue
            archives.append((ts, candidate.name, candidate))
        archives.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [item[2] for item in archives]

    def select_archive(
        self,
        archives: List[Path],
        selection: Optional[Union[int, str]] = None,
        prompt: Optional[SelectionPrompt] = None,
    ) -> Path:
        """
        Pick the archive to restore.

        Args:
            archives: Archives, newest first
            selection: 1-based index chosen up front (e.g. --index)
            prompt: Asks the user when several archives exist and no selection was given

        Raises:
            NoBackupFoundError: No archives
            AmbiguousSelectionError: Several archives and no valid selection
        """
        if not archives:
            raise NoBackupFoundError("No backup files found.")
        if len(archives) == 1:
            if selection is not None:
                self._parse_selection(selection, 1)
            return archives[0]

        if selection is None:
            if prompt is None:
                raise AmbiguousSelectionError(
                    f"Multiple backup files found ({len(archives)}); "
                    f"select one explicitly with --index"
                )
            logger.info("Multiple backup files found")
            selection = prompt(archives)
            if selection is None or not str(selection).strip():
                raise AmbiguousSelectionError("No backup selected")

        index = self._parse_selection(selection, len(archives))
        return archives[index - 1]

    @staticmethod
    def _parse_selection(selection: Union[int, str], count: int) -> int:
        if isinstance(selection, bool):
            raise AmbiguousSelectionError(f"Invalid selection: {selection!r}")
        if isinstance(selection, int):
            index = selection
        else:
            text = str(selection).strip()
            if not text.isdigit():
                raise AmbiguousSelectionError(f"Invalid selection: {selection!r}")
            index = int(text)
        if not 1 <= index <= count:
            raise AmbiguousSelectionError(
                f"Invalid selection: {index} (expected 1-{count})"
            )
        return index

    # =========================================================================
    # Unpack
    # =========================================================================

    def extract(self, archive: Path, dest: Path) -> None:
        """
        Extract archive into dest.

        Symlinks, modes and (as root) owners come back as archived. Symlink
        targets are user data and may point anywhere; member names and
        hard-link targets must stay inside dest.

        Raises:
            CorruptArchiveError: Archive unreadable or contains unsafe paths
        """
        logger.info("Extracting backup archive...")
        try:
            with tarfile.open(archive, "r:gz") as tar:
                if hasattr(tarfile, "tar_filter"):
                    tar.extractall(dest, filter=_member_filter)
                else:
                    for member in tar.getmembers():
                        _check_member(member)
                    tar.extractall(dest)
        except (tarfile.TarError, OSError, EOFError) as e:
            raise CorruptArchiveError(f"Could not extract {Path(archive).name}: {e}") from e

    @staticmethod
    def locate_root(extract_dir: Path) -> Path:
        """
        Find the captured tree inside the extraction directory.

        Raises:
            CorruptArchiveError: Neither .backup_temp nor a single directory present
        """
        candidate = Path(extract_dir) / BACKUP_TEMP_DIR
        if candidate.is_dir():
            return candidate
        dirs = [p for p in Path(extract_dir).iterdir() if p.is_dir()]
        if len(dirs) == 1:
            logger.debug(f"Using extracted directory {dirs[0].name}")
            return dirs[0]
        raise CorruptArchiveError("Could not find extracted directory.")
