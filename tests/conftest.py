"""
Shared pytest fixtures for Tar-Docka tests.

Provides a CLI runner, an in-process stand-in for the docker runtime and a
factory for application directories.
"""

import shutil
import tarfile
import pytest
from pathlib import Path
from typing import Dict, List, Optional
from typer.testing import CliRunner

from tar_docka.helpers.ui_utils import SubprocessError
from tar_docka.types import ContainerInfo


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external tools")
    config.addinivalue_line("markers", "integration: tests spanning several components")
    config.addinivalue_line("markers", "requires_docker: needs a running Docker daemon")


@pytest.fixture
def cli_runner():
    """Typer CLI runner for testing commands."""
    return CliRunner()


# =============================================================================
# Fake runtime
# =============================================================================


class FakeRuntime:
    """
    Docker runtime stand-in: every volume is a directory below ``root``.

    Export/import use tarfile directly, so archives produced with it have
    the same layout as with the helper container.
    """

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.containers: Dict[str, List[ContainerInfo]] = {}
        self.fail_export: set = set()
        self.fail_import: set = set()
        self.fail_stop: set = set()
        self.calls: List[tuple] = []

    # ---- test setup ----

    def add_volume(self, name: str, files: Optional[Dict[str, str]] = None) -> Path:
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        for rel, content in (files or {}).items():
            target = path / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return path

    def attach(self, volume: str, name: str, running: bool = True) -> None:
        self.containers.setdefault(volume, []).append(
            ContainerInfo(name=name, id=f"id-{name}", is_running=running)
        )

    def read_volume(self, name: str) -> Dict[str, str]:
        path = self.root / name
        return {
            p.relative_to(path).as_posix(): p.read_text()
            for p in sorted(path.rglob("*")) if p.is_file()
        }

    # ---- runtime interface ----

    def volume_exists(self, name: str) -> bool:
        return (self.root / name).is_dir()

    def volume_mountpoint(self, name: str) -> Optional[str]:
        return str(self.root / name) if self.volume_exists(name) else None

    def create_volume(self, name: str) -> None:
        self.calls.append(("create", name))
        (self.root / name).mkdir(parents=True)

    def containers_using_volume(self, name: str) -> List[ContainerInfo]:
        return list(self.containers.get(name, []))

    def stop_container(self, name: str) -> None:
        self.calls.append(("stop", name))
        if name in self.fail_stop:
            raise SubprocessError(["docker", "stop", name], 1, stderr="cannot stop")

    def start_container(self, name: str) -> None:
        self.calls.append(("start", name))

    def export_volume(self, volume: str, dest_dir: Path, payload_name: str) -> None:
        self.calls.append(("export", volume))
        if volume in self.fail_export:
            raise SubprocessError(["docker", "run", volume], 1, stderr="helper failed")
        with tarfile.open(Path(dest_dir) / payload_name, "w:gz") as tar:
            tar.add(str(self.root / volume), arcname=".")

    def import_volume(self, volume: str, src_dir: Path, payload_name: str) -> None:
        self.calls.append(("import", volume))
        if volume in self.fail_import:
            raise SubprocessError(["docker", "run", volume], 1, stderr="helper failed")
        path = self.root / volume
        for child in list(path.iterdir()):
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        with tarfile.open(Path(src_dir) / payload_name, "r:gz") as tar:
            if hasattr(tarfile, "tar_filter"):
                tar.extractall(path, filter="tar")
            else:
                tar.extractall(path)


class FakeCompose:
    """Compose project stand-in recording down/up calls."""

    def __init__(self, compose_file: Path, fail_up: bool = False, fail_down: bool = False):
        self.compose_file = compose_file
        self.fail_up = fail_up
        self.fail_down = fail_down
        self.calls: List[str] = []

    def down(self):
        self.calls.append("down")
        if self.fail_down:
            raise SubprocessError(["docker", "compose", "down"], 1, stderr="down failed")

    def up(self):
        self.calls.append("up")
        if self.fail_up:
            raise SubprocessError(["docker", "compose", "up", "-d"], 1, stderr="up failed")


@pytest.fixture
def fake_runtime(tmp_path):
    """In-process runtime with volumes stored under tmp_path/docker-volumes."""
    return FakeRuntime(tmp_path / "docker-volumes")


@pytest.fixture
def compose_factory():
    """
    Factory for FakeCompose projects.

    Returns (factory, projects); every project the factory creates is
    appended to projects. Set factory.fail_up / fail_down before use.
    """
    projects: List[FakeCompose] = []

    def factory(compose_file):
        project = FakeCompose(compose_file, fail_up=factory.fail_up, fail_down=factory.fail_down)
        projects.append(project)
        return project

    factory.fail_up = False
    factory.fail_down = False
    return factory, projects


SAMPLE_COMPOSE = """\
services:
  db:
    image: mariadb
    volumes:
      - db_data:/var/lib/mysql
      - ./data:/data
  web:
    image: nginx
    volumes:
      - ./config/nginx.conf:/etc/nginx/nginx.conf:ro
      - {external}:/etc/extra
volumes:
  db_data:
"""


@pytest.fixture
def app_factory(tmp_path):
    """
    Create an application directory.

        def test_something(app_factory):
            app_dir, external = app_factory()

    Returns (app_dir, external_dir). The compose file references a named
    volume ``db_data``, internal mounts ``./data`` and
    ``./config/nginx.conf`` and the external directory.
    """

    def _make(name: str = "myapp", compose: Optional[str] = None,
              filename: str = "docker-compose.yml"):
        app_dir = tmp_path / name
        app_dir.mkdir()
        external = tmp_path / "host" / "external-config"
        external.mkdir(parents=True, exist_ok=True)
        (external / "settings.ini").write_text("[main]\nkey=value\n")

        (app_dir / "data").mkdir()
        (app_dir / "data" / "file.txt").write_text("hello")
        (app_dir / "data" / "sub").mkdir()
        (app_dir / "data" / "sub" / "nested.txt").write_text("nested")
        (app_dir / "config").mkdir()
        (app_dir / "config" / "nginx.conf").write_text("worker_processes 1;")

        text = compose if compose is not None else SAMPLE_COMPOSE.format(external=external)
        (app_dir / filename).write_text(text)
        return app_dir, external

    return _make
