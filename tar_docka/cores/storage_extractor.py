################################################################################
# TAR-DOCKA
#
# @file:        storage_extractor.py
# @module:      tar_docka.cores.storage_extractor
# @description: Extracts named volumes and bind-mount sources from compose files.
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# Copyright (c) 2025 Markus F. (TZERO78)
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
# ==============================================================================
# Hinweise:
# - Structured pass over the parsed YAML (every `volumes:` key at any depth)
# - Line-based heuristic scan only when the file is not a parseable mapping
# - Ambiguous entries (interpolation, whitespace, odd names) are dropped
################################################################################

"""
Storage reference extraction for compose files.

This is not a compose schema validator. It only finds what a backup needs:
named volumes and host paths used as bind-mount sources. Anything it cannot
classify with confidence is dropped rather than guessed, because every
extracted reference is overwritten on restore.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterator, Optional, Set, Tuple

import yaml

from ..helpers.logging import get_logger
from ..types import NamedVolumeRef, StorageRefs

logger = get_logger(__name__)

VOLUME_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
BIND_PREFIXES = ("/", "./", "../", "~")
KIND_BIND = "bind"
KIND_VOLUME = "volume"

_TOP_LEVEL_KEY_RE = re.compile(r"^(?P<key>[A-Za-z0-9][A-Za-z0-9_.-]*)\s*:\s*(?P<rest>.*)$")
_KEY_VALUE_RE = re.compile(r"^-?\s*(?P<key>[A-Za-z_]+)\s*:\s*(?P<value>.*)$")


def normalize_project_name(name: str) -> str:
    """Normalize a project name the way compose does (lowercase, [a-z0-9_-])."""
    normalized = re.sub(r"[^a-z0-9_-]", "", name.lower())
    return normalized.lstrip("_-")


def is_ambiguous(source: str) -> bool:
    """Variable interpolation, whitespace or empty: cannot be resolved safely."""
    return not source or "$" in source or any(c.isspace() for c in source)


def is_bind_source(source: str) -> bool:
    return source.startswith(BIND_PREFIXES) or source in (".", "..")


def classify_short_syntax(entry: str) -> Optional[Tuple[str, str]]:
    """
    Classify a short-syntax entry ``source:target[:mode]``.

    Returns:
        (KIND_BIND, source) or (KIND_VOLUME, name), None for anonymous
        volumes and anything ambiguous
    """
    entry = _unquote(entry.strip())
    if ":" not in entry:
        # "/data" alone is an anonymous volume
        return None
    source, _, target = entry.partition(":")
    source = source.strip()
    if target.startswith("\\") or not target:
        return None
    return _classify_source(source)


def _classify_source(source: str, kind_hint: Optional[str] = None) -> Optional[Tuple[str, str]]:
    if is_ambiguous(source):
        logger.debug(f"Dropping ambiguous storage reference: {source!r}")
        return None
    if kind_hint == KIND_BIND or (kind_hint is None and is_bind_source(source)):
        return KIND_BIND, source
    if kind_hint in (None, KIND_VOLUME) and VOLUME_NAME_RE.match(source):
        return KIND_VOLUME, source
    logger.debug(f"Dropping unrecognized storage reference: {source!r}")
    return None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "yes", "on")


# =============================================================================
# Structured pass
# =============================================================================

def _iter_volume_entries(node: Any, depth: int = 0) -> Iterator[Any]:
    """Yield items of every ``volumes:`` list at any nesting depth."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "volumes" and isinstance(value, list):
                yield from value
            elif depth > 0 or key != "volumes":
                # top-level `volumes:` mapping holds declarations, not usages
                yield from _iter_volume_entries(value, depth + 1)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_volume_entries(item, depth + 1)


def _classify_long_syntax(entry: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    mount_type = entry.get("type")
    source = entry.get("source")
    if not isinstance(source, str):
        return None
    if mount_type is None:
        return _classify_source(source)
    if mount_type in (KIND_BIND, KIND_VOLUME):
        return _classify_source(source, kind_hint=mount_type)
    # tmpfs, npipe, cluster: nothing to back up
    return None


def _declared_volumes(doc: Dict[str, Any]) -> Dict[str, NamedVolumeRef]:
    declared: Dict[str, NamedVolumeRef] = {}
    top = doc.get("volumes")
    if not isinstance(top, dict):
        return declared

    for raw_key, definition in top.items():
        key = str(raw_key)
        if not VOLUME_NAME_RE.match(key):
            logger.debug(f"Dropping invalid volume declaration: {key!r}")
            continue
        name = None
        external = False
        if isinstance(definition, dict):
            explicit = definition.get("name")
            if isinstance(explicit, str) and not is_ambiguous(explicit):
                name = explicit
            ext = definition.get("external")
            if isinstance(ext, dict):
                # legacy form: external: {name: foo}
                external = True
                legacy_name = ext.get("name")
                if isinstance(legacy_name, str) and not is_ambiguous(legacy_name):
                    name = legacy_name
            elif ext is not None:
                external = _truthy(ext)
        declared[key] = NamedVolumeRef(key=key, name=name, external=external)
    return declared


def extract_from_document(doc: Dict[str, Any]) -> StorageRefs:
    """
    Collect storage references from a parsed compose document.

    Args:
        doc: Result of yaml.safe_load (must be a mapping)

    Returns:
        Deduplicated, sorted storage references
    """
    volumes = _declared_volumes(doc)
    mounts: Set[str] = set()

    for entry in _iter_volume_entries(doc):
        if isinstance(entry, str):
            classified = classify_short_syntax(entry)
        elif isinstance(entry, dict):
            classified = _classify_long_syntax(entry)
        else:
            classified = None
        if classified is None:
            continue
        kind, value = classified
        if kind == KIND_BIND:
            mounts.add(value)
        else:
            volumes.setdefault(value, NamedVolumeRef(key=value))

    project_name = doc.get("name")
    if not isinstance(project_name, str) or is_ambiguous(project_name):
        project_name = None
    else:
        project_name = normalize_project_name(project_name) or None

    return StorageRefs(
        volumes=sorted(volumes.values(), key=lambda v: v.key),
        bind_mounts=sorted(mounts),
        project_name=project_name,
    )


# =============================================================================
# Heuristic scan
# =============================================================================

def _strip_comment(line: str) -> str:
    if line.lstrip().startswith("#"):
        return ""
    idx = line.find(" #")
    return line[:idx] if idx >= 0 else line


def scan_compose_text(text: str) -> StorageRefs:
    """
    Line-based scan for files that cannot be parsed as YAML.

    Recognizes list items under ``volumes:`` keys at any indentation, flow
    lists (``volumes: [a:/b]``), key entries of the top-level volumes block,
    long-syntax ``type:``/``source:`` lines, and bind-like ``- ./x:/y`` or
    ``source: ./x`` lines outside any volumes block.
    """
    volumes: Dict[str, NamedVolumeRef] = {}
    mounts: Set[str] = set()

    def add(classified: Optional[Tuple[str, str]]) -> None:
        if classified is None:
            return
        kind, value = classified
        if kind == KIND_BIND:
            mounts.add(value)
        else:
            volumes.setdefault(value, NamedVolumeRef(key=value))

    block_indent: Optional[int] = None
    top_level = False
    child_indent: Optional[int] = None
    current_key: Optional[str] = None
    current_type: Optional[str] = None

    for raw in text.splitlines():
        line = _strip_comment(raw.replace("\t", "    ")).rstrip()
        if not line.strip():
            continue
        indent = len(line) - len(line.lstrip(" "))
        stripped = line.strip()

        if block_indent is not None:
            same_level_item = indent == block_indent and stripped.startswith("-")
            if indent <= block_indent and not same_level_item:
                block_indent = None
                top_level = False
                child_indent = None
                current_key = None
                current_type = None

        if stripped.startswith("volumes:"):
            rest = stripped[len("volumes:"):].strip()
            if rest.startswith("[") and rest.endswith("]"):
                for item in rest[1:-1].split(","):
                    if item.strip():
                        add(classify_short_syntax(item))
                continue
            if not rest:
                block_indent = indent
                top_level = indent == 0
                child_indent = None
                current_key = None
                current_type = None
            continue

        if block_indent is None:
            # Secondary scan: bind-like declarations outside a volumes block
            kv = _KEY_VALUE_RE.match(stripped)
            if kv and kv.group("key") == "source":
                source = _unquote(kv.group("value").strip())
                if is_bind_source(source):
                    add(_classify_source(source, kind_hint=KIND_BIND))
            elif stripped.startswith("- "):
                item = _unquote(stripped[2:].strip())
                source, sep, target = item.partition(":")
                if sep and target.startswith("/") and is_bind_source(source.strip()):
                    add(_classify_source(source.strip(), kind_hint=KIND_BIND))
            continue

        # inside a volumes block
        if top_level and not stripped.startswith("-"):
            if child_indent is None:
                child_indent = indent
            if indent == child_indent:
                match = _TOP_LEVEL_KEY_RE.match(stripped)
                current_key = None
                if match:
                    current_key = match.group("key")
                    volumes.setdefault(current_key, NamedVolumeRef(key=current_key))
                continue
            kv = _KEY_VALUE_RE.match(stripped)
            if current_key and kv:
                key, value = kv.group("key"), _unquote(kv.group("value").strip())
                ref = volumes[current_key]
                if key == "name" and value and not is_ambiguous(value):
                    volumes[current_key] = NamedVolumeRef(ref.key, value, ref.external)
                elif key == "external" and _truthy(value):
                    volumes[current_key] = NamedVolumeRef(ref.key, ref.name, True)
            continue

        if stripped.startswith("-"):
            current_type = None
            item = stripped[1:].strip()
            kv = _KEY_VALUE_RE.match(item)
            if kv and kv.group("key") in ("type", "source", "target", "read_only"):
                stripped = item  # long syntax item, handled below
            else:
                add(classify_short_syntax(item))
                continue

        kv = _KEY_VALUE_RE.match(stripped)
        if not kv:
            continue
        key, value = kv.group("key"), _unquote(kv.group("value").strip())
        if key == "type":
            current_type = value
        elif key == "source":
            if current_type in (KIND_BIND, KIND_VOLUME):
                add(_classify_source(value, kind_hint=current_type))
            elif current_type is None:
                add(_classify_source(value))

    return StorageRefs(
        volumes=sorted(volumes.values(), key=lambda v: v.key),
        bind_mounts=sorted(mounts),
    )


# =============================================================================
# Entry point
# =============================================================================

def extract_storage_refs(text: str) -> StorageRefs:
    """
    Extract named volumes and bind-mount sources from compose file text.

    Uses the structured pass when the text parses as a YAML mapping and the
    heuristic scan otherwise.
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning(f"Compose file is not valid YAML ({e.__class__.__name__}), "
                       f"falling back to heuristic scan")
        return scan_compose_text(text)

    if doc is None:
        return StorageRefs()
    if not isinstance(doc, dict):
        logger.warning("Compose file is not a mapping, falling back to heuristic scan")
        return scan_compose_text(text)

    refs = extract_from_document(doc)
    logger.debug(
        f"Extracted {len(refs.volumes)} volumes and {len(refs.bind_mounts)} bind mounts",
        extra={"volumes": len(refs.volumes), "bind_mounts": len(refs.bind_mounts)},
    )
    return refs
