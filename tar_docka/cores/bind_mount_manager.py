################################################################################
# TAR-DOCKA
#
# @file:        bind_mount_manager.py
# @module:      tar_docka.cores.bind_mount_manager
# @description: Captures and restores bind-mounted host paths.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Internal mounts (inside the app dir) are stored relative to the app root
# - External mounts are stored under bind_mounts/external/<sanitized_name>
#   with .mount_info holding the original absolute path
# - Missing sources are skipped, per-file copy errors are warnings
# - Two external paths with the same sanitized name: the second one fails
# - Owners are copied along when running as root
################################################################################

"""Bind-mount capture/restore unit."""

import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import PartialCopyFailure
from ..helpers.constants import (
    BACKUP_TEMP_DIR,
    EXTERNAL_MOUNT_DIR,
    MOUNT_INFO_FILE,
    MOUNT_KIND_FILE,
    RESTORE_TEMP_DIR,
)
from ..helpers.logging import get_logger
from ..types import (
    BindMountRef,
    ItemResult,
    MOUNT_EXTERNAL,
    MOUNT_INTERNAL,
    STATUS_FAILED,
    STATUS_OK,
    STATUS_PARTIAL,
    STATUS_SKIPPED,
)

logger = get_logger(__name__)

KIND_BIND_MOUNT = "bind_mount"
MOUNT_KIND_FILE_VALUE = "file"
MARKER_FILES = (MOUNT_INFO_FILE, MOUNT_KIND_FILE)
_RESERVED_INTERNAL = (EXTERNAL_MOUNT_DIR, BACKUP_TEMP_DIR, RESTORE_TEMP_DIR)


def sanitize_external_path(path: Path) -> str:
    """``/etc/external-config`` -> ``etc_external-config``"""
    return path.as_posix().replace("/", "_").lstrip("_")


def classify_mount(source: str, app_dir: Path) -> Optional[BindMountRef]:
    """
    Classify a bind-mount source as internal or external.

    Relative sources are resolved against app_dir, ``~`` is expanded.
    Returns None for sources that cannot be archived safely: the application
    directory itself or one of its ancestors, and internal paths that would
    collide with the archive's own directories.
    """
    app_root = Path(os.path.abspath(app_dir))
    expanded = os.path.expanduser(source)
    if os.path.isabs(expanded):
        path = Path(os.path.normpath(expanded))
    else:
        path = Path(os.path.normpath(os.path.join(str(app_root), expanded)))

    if app_root == path or app_root.is_relative_to(path):
        logger.warning(f"Ignoring bind mount {source}: it contains the application directory")
        return None

    if path.is_relative_to(app_root):
        relative = path.relative_to(app_root).as_posix()
        if relative.split("/", 1)[0] in _RESERVED_INTERNAL:
            logger.warning(f"Ignoring bind mount {source}: path collides with archive layout")
            return None
        return BindMountRef(source=source, path=path, kind=MOUNT_INTERNAL,
                            relative_path=relative)

    return BindMountRef(source=source, path=path, kind=MOUNT_EXTERNAL,
                        sanitized_name=sanitize_external_path(path))


def _clear_conflicting_links(src: Path, dst: Path) -> None:
    """Remove symlinks in dst that copytree would have to recreate."""
    if not dst.exists():
        return
    for root, dirs, files in os.walk(src):
        rel = Path(root).relative_to(src)
        for name in dirs + files:
            if os.path.islink(os.path.join(root, name)):
                target = dst / rel / name
                if target.is_symlink():
                    target.unlink()


def _preserve_owner(src: Path, dst: Path) -> None:
    """Give the copies below dst the owner and group of their sources (root only)."""
    if os.geteuid() != 0:
        return
    pairs = [(src, dst)]
    if src.is_dir() and not src.is_symlink():
        for root, dirs, files in os.walk(src):
            rel = Path(root).relative_to(src)
            for name in dirs + files:
                pairs.append((Path(root) / name, dst / rel / name))
    for source, target in pairs:
        if not os.path.lexists(target):
            continue
        try:
            st = os.lstat(source)
            os.chown(target, st.st_uid, st.st_gid, follow_symlinks=False)
        except OSError as e:
            logger.warning(f"Could not set owner of {target}: {e}")


def _copy_tree(src: Path, dst: Path) -> None:
    """
    Mirror a directory, preserving metadata, ownership and symlinks.

    Raises:
        PartialCopyFailure: Some entries could not be copied (the rest was)
    """
    _clear_conflicting_links(src, dst)
    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except shutil.Error as e:
        failed = [str(err[0]) for err in e.args[0]]
        raise PartialCopyFailure(f"Could not copy all files from {src}", failed) from e
    finally:
        _preserve_owner(src, dst)


def _copy_entry(src: Path, dst: Path) -> None:
    """Copy a file, symlink or directory to dst, overwriting."""
    if src.is_dir() and not src.is_symlink():
        _copy_tree(src, dst)
        return
    dst.parent.mkdir(parents=True, exist_ok=True)
    if dst.is_symlink():
        dst.unlink()
    shutil.copy2(src, dst, follow_symlinks=False)
    _preserve_owner(src, dst)


class BindMountManager:
    """Capture and restore of bind-mounted paths."""

    # =========================================================================
    # Capture
    # =========================================================================

    def capture(self, sources: List[str], app_dir: Path, dest_dir: Path) -> List[ItemResult]:
        """
        Copy every bind-mount source into dest_dir.

        Args:
            sources: Bind-mount sources as written in the compose file
            app_dir: Application directory
            dest_dir: ``<workspace>/bind_mounts``

        Returns:
            One ItemResult per source
        """
        results: List[ItemResult] = []
        if not sources:
            return results

        logger.info("Backing up bind mounts...")
        dest_dir.mkdir(parents=True, exist_ok=True)
        # sanitized name -> external path stored under it
        claimed: Dict[str, Path] = {}
        for source in sources:
            logger.info(f"Processing bind mount: {source}", extra={"mount": source})
            ref = classify_mount(source, app_dir)
            if ref is None:
                results.append(ItemResult(KIND_BIND_MOUNT, source, STATUS_SKIPPED,
                                          "source cannot be archived safely"))
                continue
            results.append(self._capture_one(ref, dest_dir, claimed))
        return results

    def _capture_one(self, ref: BindMountRef, dest_dir: Path,
                     claimed: Dict[str, Path]) -> ItemResult:
        if not ref.is_internal:
            owner = claimed.get(ref.sanitized_name)
            if owner == ref.path:
                logger.info(f"  - {ref.path} already backed up")
                return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_SKIPPED,
                                  f"{ref.path} already backed up")
            if owner is not None:
                logger.error(f"Cannot back up {ref.path}: archive name {ref.sanitized_name} "
                             f"is already used by {owner}", extra={"mount": ref.source})
                return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_FAILED,
                                  f"archive name {ref.sanitized_name} already used by {owner}")

        if not ref.path.exists():
            logger.info(f"  - Skipping {ref.source}: {ref.path} does not exist")
            return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_SKIPPED,
                              f"{ref.path} does not exist")

        try:
            if ref.is_internal:
                logger.info(f"  - Backing up local bind mount: {ref.relative_path}")
                _copy_entry(ref.path, dest_dir / ref.relative_path)
            else:
                logger.info(f"  - External bind mount detected: {ref.path}")
                claimed[ref.sanitized_name] = ref.path
                target = dest_dir / EXTERNAL_MOUNT_DIR / ref.sanitized_name
                target.mkdir(parents=True, exist_ok=True)
                (target / MOUNT_INFO_FILE).write_text(str(ref.path) + "\n", encoding="utf-8")
                if ref.path.is_dir():
                    _copy_tree(ref.path, target)
                else:
                    (target / MOUNT_KIND_FILE).write_text(MOUNT_KIND_FILE_VALUE + "\n",
                                                         encoding="utf-8")
                    _copy_entry(ref.path, target / ref.path.name)
        except PartialCopyFailure as e:
            logger.warning(f"Could not copy all files from {ref.path} "
                           f"({len(e.failed_paths)} failed)", extra={"mount": ref.source})
            return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_PARTIAL, str(e))
        except OSError as e:
            logger.error(f"Failed to back up bind mount {ref.source}: {e}",
                         extra={"mount": ref.source})
            return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_FAILED, str(e))

        return ItemResult(KIND_BIND_MOUNT, ref.source, STATUS_OK)

    # =========================================================================
    # Restore
    # =========================================================================

    def restore(self, bind_mounts_dir: Path, app_dir: Path) -> List[ItemResult]:
        """
        Copy archived bind mounts back to their places.

        Internal entries go below app_dir, external ones to the path recorded
        in their .mount_info.
        """
        results: List[ItemResult] = []
        if not bind_mounts_dir.is_dir():
            return results

        logger.info("Restoring bind mounts...")
        for entry in sorted(bind_mounts_dir.iterdir()):
            if entry.name == EXTERNAL_MOUNT_DIR and entry.is_dir():
                continue
            results.append(self._restore_internal(entry, Path(app_dir)))

        external_root = bind_mounts_dir / EXTERNAL_MOUNT_DIR
        if external_root.is_dir():
            logger.info("Restoring external bind mounts...")
            for entry in sorted(p for p in external_root.iterdir() if p.is_dir()):
                results.append(self._restore_external(entry))
        return results

    def _restore_internal(self, entry: Path, app_dir: Path) -> ItemResult:
        dest = app_dir / entry.name
        logger.info(f"  - Restoring {entry.name} to {dest}")
        return self._copy_back(entry.name, lambda: _copy_entry(entry, dest))

    def _restore_external(self, entry: Path) -> ItemResult:
        info_file = entry / MOUNT_INFO_FILE
        if not info_file.is_file():
            logger.warning(f"  - Could not determine original path for {entry.name}")
            return ItemResult(KIND_BIND_MOUNT, entry.name, STATUS_SKIPPED,
                              "missing .mount_info, original path unknown")

        original = Path(info_file.read_text(encoding="utf-8").strip())
        if not original.is_absolute():
            logger.warning(f"  - Invalid original path in {entry.name}/.mount_info: {original}")
            return ItemResult(KIND_BIND_MOUNT, entry.name, STATUS_SKIPPED,
                              f"invalid original path {original}")

        kind_file = entry / MOUNT_KIND_FILE
        is_file = (kind_file.is_file()
                   and kind_file.read_text(encoding="utf-8").strip() == MOUNT_KIND_FILE_VALUE)

        logger.info(f"  - Restoring external mount {entry.name} to {original}")
        if is_file:
            payload = entry / original.name
            if not payload.exists():
                return ItemResult(KIND_BIND_MOUNT, str(original), STATUS_FAILED,
                                  f"payload {original.name} missing in archive")
            return self._copy_back(str(original), lambda: _copy_entry(payload, original))

        def copy_dir():
            original.mkdir(parents=True, exist_ok=True)
            failed = []
            for child in sorted(entry.iterdir()):
                if child.name in MARKER_FILES:
                    continue
                try:
                    _copy_entry(child, original / child.name)
                except PartialCopyFailure as e:
                    failed.extend(e.failed_paths)
                except OSError as e:
                    failed.append(f"{child}: {e}")
            if failed:
                raise PartialCopyFailure(f"Could not restore all files to {original}", failed)

        return self._copy_back(str(original), copy_dir)

    def _copy_back(self, name: str, copy) -> ItemResult:
        try:
            copy()
        except PartialCopyFailure as e:
            logger.warning(f"{e} ({len(e.failed_paths)} failed)")
            return ItemResult(KIND_BIND_MOUNT, name, STATUS_PARTIAL, str(e))
        except OSError as e:
            logger.error(f"Failed to restore {name}: {e}")
            return ItemResult(KIND_BIND_MOUNT, name, STATUS_FAILED, str(e))
        return ItemResult(KIND_BIND_MOUNT, name, STATUS_OK)
