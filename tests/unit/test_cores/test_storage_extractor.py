"""
Unit tests for storage reference extraction.

Covers the structured YAML pass, the line-based heuristic scan and the
classification of single entries.
"""

import pytest

from tar_docka.cores.storage_extractor import (
    KIND_BIND,
    KIND_VOLUME,
    classify_short_syntax,
    extract_from_document,
    extract_storage_refs,
    normalize_project_name,
    scan_compose_text,
)
from tar_docka.types import NamedVolumeRef


COMPOSE = """\
services:
  db:
    image: mariadb
    volumes:
      - db_data:/var/lib/mysql
      - ./data:/data
      - /etc/external-config:/etc/config:ro
      - /anonymous
  worker:
    image: busybox
    volumes:
      - db_data:/backup
      - type: bind
        source: ./logs
        target: /logs
      - type: volume
        source: cache
        target: /cache
      - type: tmpfs
        target: /tmp
volumes:
  db_data:
  cache:
    name: shared_cache
"""


def by_key(refs):
    return {v.key: v for v in refs.volumes}


# =============================================================================
# Single entries
# =============================================================================


@pytest.mark.unit
class TestClassifyShortSyntax:
    """Tests for source:target[:mode] entries."""

    @pytest.mark.parametrize("entry,expected", [
        ("db_data:/var/lib/mysql", (KIND_VOLUME, "db_data")),
        ("./data:/data", (KIND_BIND, "./data")),
        ("../shared:/shared:ro", (KIND_BIND, "../shared")),
        ("/etc/external-config:/etc/config", (KIND_BIND, "/etc/external-config")),
        ("~/.ssh:/root/.ssh:ro", (KIND_BIND, "~/.ssh")),
        ("'./quoted:/q'", (KIND_BIND, "./quoted")),
    ])
    def test_classifies_entries(self, entry, expected):
        assert classify_short_syntax(entry) == expected

    @pytest.mark.parametrize("entry", [
        "/anonymous",
        "${DATA_DIR}:/data",
        "$HOME/data:/data",
        ":/data",
        "bad name:/data",
        "-invalid:/data",
    ])
    def test_drops_anonymous_and_ambiguous_entries(self, entry):
        assert classify_short_syntax(entry) is None


# =============================================================================
# Structured pass
# =============================================================================


@pytest.mark.unit
class TestStructuredExtraction:
    """Tests for extract_storage_refs on valid YAML."""

    def test_extracts_declared_set(self):
        refs = extract_storage_refs(COMPOSE)

        assert refs.volume_keys == {"db_data", "cache"}
        assert refs.mount_sources == {"./data", "/etc/external-config", "./logs"}

    def test_duplicates_collapse(self):
        refs = extract_storage_refs(COMPOSE)

        assert [v.key for v in refs.volumes].count("db_data") == 1
        assert len(refs.bind_mounts) == len(set(refs.bind_mounts))

    def test_explicit_volume_name_is_kept(self):
        refs = extract_storage_refs(COMPOSE)

        assert by_key(refs)["cache"].name == "shared_cache"
        assert by_key(refs)["db_data"].name is None

    def test_external_volumes(self):
        text = """\
services:
  app:
    volumes:
      - certs:/certs
      - legacy:/legacy
volumes:
  certs:
    external: true
  legacy:
    external:
      name: old_certs
"""
        refs = extract_storage_refs(text)

        assert by_key(refs)["certs"] == NamedVolumeRef("certs", None, True)
        assert by_key(refs)["legacy"] == NamedVolumeRef("legacy", "old_certs", True)

    def test_declared_but_unused_volume_is_included(self):
        text = "services:\n  app:\n    image: x\nvolumes:\n  spare:\n"

        refs = extract_storage_refs(text)

        assert refs.volume_keys == {"spare"}

    def test_independent_of_order_and_whitespace(self):
        reordered = """\
volumes:
  cache:
    name:   shared_cache
  db_data: {}

services:
  worker:
    image: busybox
    volumes:
      -   type: volume
          source: cache
          target: /cache
      -   type: bind
          source: ./logs
          target: /logs
      - db_data:/backup
  db:
    image: mariadb
    volumes:
    - "/etc/external-config:/etc/config:ro"
    - ./data:/data
    - db_data:/var/lib/mysql
"""
        original = extract_storage_refs(COMPOSE)
        refs = extract_storage_refs(reordered)

        assert refs.volume_keys == original.volume_keys
        assert refs.mount_sources == original.mount_sources

    def test_project_name_is_normalized(self):
        refs = extract_from_document({"name": "My App", "services": {}})

        assert refs.project_name == "myapp"

    def test_no_project_name(self):
        assert extract_storage_refs(COMPOSE).project_name is None

    def test_empty_document(self):
        refs = extract_storage_refs("")

        assert refs.volumes == []
        assert refs.bind_mounts == []

    def test_results_are_sorted(self):
        refs = extract_storage_refs(COMPOSE)

        assert [v.key for v in refs.volumes] == sorted(v.key for v in refs.volumes)
        assert refs.bind_mounts == sorted(refs.bind_mounts)


# =============================================================================
# Heuristic scan
# =============================================================================


@pytest.mark.unit
class TestHeuristicScan:
    """Tests for the line-based fallback."""

    def test_matches_structured_pass_on_valid_yaml(self):
        structured = extract_storage_refs(COMPOSE)
        scanned = scan_compose_text(COMPOSE)

        assert scanned.volume_keys == structured.volume_keys
        assert scanned.mount_sources == structured.mount_sources

    def test_reads_top_level_names(self):
        scanned = scan_compose_text(COMPOSE)

        assert by_key(scanned)["cache"].name == "shared_cache"

    def test_flow_list(self):
        text = "services:\n  app:\n    volumes: [db:/db, ./cfg:/cfg]\n"

        scanned = scan_compose_text(text)

        assert scanned.volume_keys == {"db"}
        assert scanned.mount_sources == {"./cfg"}

    def test_items_at_same_indent_as_volumes_key(self):
        text = "services:\n  app:\n    volumes:\n    - db:/db\n    - ./cfg:/cfg\n    image: x\n"

        scanned = scan_compose_text(text)

        assert scanned.volume_keys == {"db"}
        assert scanned.mount_sources == {"./cfg"}

    def test_comments_are_ignored(self):
        text = """\
services:
  app:
    volumes:
      # - old:/old
      - ./cfg:/cfg  # config
"""
        scanned = scan_compose_text(text)

        assert scanned.volume_keys == set()
        assert scanned.mount_sources == {"./cfg"}

    def test_invalid_yaml_falls_back_to_scan(self):
        text = """\
services:
  app:
    volumes:
      - app_data:/data
      - ./uploads:/uploads
    command: "unterminated
"""
        refs = extract_storage_refs(text)

        assert refs.volume_keys == {"app_data"}
        assert refs.mount_sources == {"./uploads"}

    def test_bind_mount_outside_volumes_block(self):
        text = "x-defaults:\n  mounts:\n    - ./shared:/shared\n    - source: ./other\n"

        scanned = scan_compose_text(text)

        assert scanned.mount_sources == {"./shared", "./other"}


@pytest.mark.unit
def test_normalize_project_name():
    assert normalize_project_name("My_App-2") == "my_app-2"
    assert normalize_project_name("__x") == "x"
