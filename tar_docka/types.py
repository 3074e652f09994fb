################################################################################
# TAR-DOCKA
#
# @file:        types.py
# @module:      tar_docka.types
# @description: Shared data models for storage references, item results and run reports.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - NamedVolumeRef and BindMountRef are recomputed on every run
# - ItemResult is the per-volume / per-mount outcome, RunReport aggregates them
################################################################################

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Dict, Any, Optional


MOUNT_INTERNAL = "internal"
MOUNT_EXTERNAL = "external"

STATUS_OK = "ok"
STATUS_PARTIAL = "partial"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


# ---- Storage references ----

@dataclass(frozen=True)
class NamedVolumeRef:
    key: str
    name: Optional[str] = None  # explicit `name:` from the top-level volumes block
    external: bool = False

    def candidate_names(self, project_name: Optional[str]) -> List[str]:
        """Runtime volume names to try, most specific first."""
        candidates: List[str] = []
        if self.name:
            candidates.append(self.name)
        if self.external:
            candidates.append(self.key)
        if project_name:
            candidates.append(f"{project_name}_{self.key}")
        candidates.append(self.key)
        # Reihenfolge beibehalten, Duplikate raus
        return list(dict.fromkeys(candidates))


@dataclass(frozen=True)
class BindMountRef:
    source: str  # as written in the compose file
    path: Path  # absolute host path
    kind: str  # MOUNT_INTERNAL or MOUNT_EXTERNAL
    relative_path: Optional[str] = None  # internal only
    sanitized_name: Optional[str] = None  # external only

    @property
    def is_internal(self) -> bool:
        return self.kind == MOUNT_INTERNAL


@dataclass
class StorageRefs:
    volumes: List[NamedVolumeRef] = field(default_factory=list)
    bind_mounts: List[str] = field(default_factory=list)
    project_name: Optional[str] = None

    @property
    def volume_keys(self) -> set:
        return {v.key for v in self.volumes}

    @property
    def mount_sources(self) -> set:
        return set(self.bind_mounts)


# ---- Runtime ----

@dataclass
class ContainerInfo:
    name: str
    id: str = ""
    is_running: bool = False


# ---- Results & reports ----

@dataclass
class ItemResult:
    kind: str  # "volume", "bind_mount", "compose", "container"
    name: str
    status: str = STATUS_OK
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "status": self.status,
            "message": self.message,
        }


@dataclass
class RunReport:
    mode: str  # "backup" or "restore"
    app_dir: Path
    timestamp: datetime
    archive: Optional[Path] = None
    duration_seconds: float = 0.0
    items: List[ItemResult] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        """True when no fatal error occurred; per-item failures are only warnings."""
        return self.error_message is None

    @property
    def failures(self) -> List[ItemResult]:
        return [i for i in self.items if i.status == STATUS_FAILED]

    @property
    def warnings(self) -> List[str]:
        return [
            f"{i.kind} {i.name}: {i.message}"
            for i in self.items
            if i.status != STATUS_OK and i.message
        ]

    def extend(self, results: List[ItemResult]) -> None:
        self.items.extend(results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "app_dir": str(self.app_dir),
            "timestamp": self.timestamp.isoformat(),
            "archive": str(self.archive) if self.archive else None,
            "duration_seconds": self.duration_seconds,
            "success": self.success,
            "error_message": self.error_message,
            "failures": len(self.failures),
            "items": [i.to_dict() for i in self.items],
        }
