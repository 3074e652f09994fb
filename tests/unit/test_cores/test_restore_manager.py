"""
Unit tests for RestoreManager.

Archives are produced with BackupManager and the FakeRuntime, then
restored with FakeCompose projects standing in for docker compose.
"""

import os
import shutil
import stat
import tarfile
from datetime import datetime
from unittest.mock import Mock

import pytest

from tar_docka.cores.backup_manager import BackupManager
from tar_docka.cores.restore_manager import RestoreManager
from tar_docka.errors import (
    AmbiguousSelectionError,
    ApplicationDirectoryError,
    ContainerLifecycleError,
    CorruptArchiveError,
    NoBackupFoundError,
)
from tar_docka.types import STATUS_FAILED, STATUS_OK, STATUS_SKIPPED


def backup(app_dir, runtime, when=datetime(2024, 5, 1, 12, 0, 0)):
    return BackupManager(runtime=runtime).backup(app_dir, now=when).archive


@pytest.fixture
def backed_up_app(app_factory, fake_runtime):
    """Application with one archive; live data is changed afterwards."""
    app_dir, external = app_factory()
    fake_runtime.add_volume("myapp_db_data", {"ibdata": "original"})
    archive = backup(app_dir, fake_runtime)

    (fake_runtime.root / "myapp_db_data" / "ibdata").write_text("corrupted")
    shutil.rmtree(app_dir / "data")
    (external / "settings.ini").write_text("changed")
    return app_dir, external, archive


@pytest.mark.unit
class TestRestore:

    def test_restores_everything(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, external, archive = backed_up_app
        factory, projects = compose_factory

        report = RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        assert report.success
        assert report.archive == archive
        assert fake_runtime.read_volume("myapp_db_data") == {"ibdata": "original"}
        assert (app_dir / "data" / "sub" / "nested.txt").read_text() == "nested"
        assert (external / "settings.ini").read_text() == "[main]\nkey=value\n"
        assert projects[0].calls == ["down", "up"]
        assert projects[0].compose_file == app_dir / "docker-compose.yml"

    def test_compose_down_before_data_and_up_after(self, backed_up_app, fake_runtime,
                                                   compose_factory):
        app_dir, _, _ = backed_up_app
        factory, _ = compose_factory

        report = RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        kinds = [(i.kind, i.name) for i in report.items]
        assert kinds[0] == ("compose", "down")
        assert kinds[-1] == ("compose", "up")

    def test_workspace_removed(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, _ = backed_up_app

        RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0]).restore(app_dir)

        assert not (app_dir / ".restore_temp").exists()

    def test_restoring_twice_equals_once(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, external, _ = backed_up_app
        manager = RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0])

        manager.restore(app_dir)
        first = (fake_runtime.read_volume("myapp_db_data"),
                 sorted(p.relative_to(app_dir).as_posix() for p in app_dir.rglob("*")))
        manager.restore(app_dir)
        second = (fake_runtime.read_volume("myapp_db_data"),
                  sorted(p.relative_to(app_dir).as_posix() for p in app_dir.rglob("*")))

        assert first == second

    def test_compose_file_is_restored(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, _ = backed_up_app
        original = (app_dir / "docker-compose.yml").read_text()
        (app_dir / "docker-compose.yml").write_text("broken: [")

        RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0]).restore(app_dir)

        assert (app_dir / "docker-compose.yml").read_text() == original

    def test_compose_down_failure_is_a_warning(self, backed_up_app, fake_runtime,
                                               compose_factory):
        app_dir, _, _ = backed_up_app
        factory, projects = compose_factory
        factory.fail_down = True

        report = RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        assert report.success
        assert report.items[0].status == STATUS_FAILED
        assert projects[0].calls == ["down", "up"]
        assert fake_runtime.read_volume("myapp_db_data") == {"ibdata": "original"}

    def test_compose_up_failure_is_fatal_after_cleanup(self, backed_up_app, fake_runtime,
                                                       compose_factory):
        app_dir, _, _ = backed_up_app
        factory, _ = compose_factory
        factory.fail_up = True
        manager = RestoreManager(runtime=fake_runtime, compose_factory=factory)

        with pytest.raises(ContainerLifecycleError):
            manager.restore(app_dir)

        assert not (app_dir / ".restore_temp").exists()
        assert not manager.last_report.success
        assert manager.last_report.items[-1].status == STATUS_FAILED
        # data was restored before the failure
        assert fake_runtime.read_volume("myapp_db_data") == {"ibdata": "original"}

    def test_volume_failure_does_not_abort(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, _ = backed_up_app
        fake_runtime.fail_import.add("myapp_db_data")

        report = RestoreManager(runtime=fake_runtime,
                                compose_factory=compose_factory[0]).restore(app_dir)

        assert report.success
        assert [f.name for f in report.failures] == ["myapp_db_data"]
        assert (app_dir / "data" / "file.txt").read_text() == "hello"


@pytest.mark.unit
class TestFileMetadata:
    """Links and permission bits survive the archive round trip."""

    def test_absolute_symlink_in_bind_mount(self, app_factory, fake_runtime, compose_factory):
        app_dir, _ = app_factory()
        os.symlink("/etc/hostname", app_dir / "data" / "tz")
        backup(app_dir, fake_runtime)
        shutil.rmtree(app_dir / "data")

        report = RestoreManager(runtime=fake_runtime,
                                compose_factory=compose_factory[0]).restore(app_dir)

        assert report.success
        assert not report.failures
        assert (app_dir / "data" / "tz").is_symlink()
        assert os.readlink(app_dir / "data" / "tz") == "/etc/hostname"
        assert (app_dir / "data" / "file.txt").read_text() == "hello"

    def test_permission_bits_are_kept(self, app_factory, fake_runtime, compose_factory):
        app_dir, _ = app_factory()
        (app_dir / "data" / "sub").chmod(0o700)
        script = app_dir / "data" / "run.sh"
        script.write_text("#!/bin/sh\n")
        script.chmod(0o750)
        backup(app_dir, fake_runtime)
        shutil.rmtree(app_dir / "data")

        RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0]).restore(app_dir)

        assert stat.S_IMODE((app_dir / "data" / "sub").stat().st_mode) == 0o700
        assert stat.S_IMODE(script.stat().st_mode) == 0o750


@pytest.mark.unit
class TestArchiveSelection:

    def test_no_archive(self, app_factory, fake_runtime, compose_factory):
        app_dir, _ = app_factory()

        with pytest.raises(NoBackupFoundError):
            RestoreManager(runtime=fake_runtime,
                           compose_factory=compose_factory[0]).restore(app_dir)

        assert not (app_dir / ".restore_temp").exists()

    def test_missing_directory(self, tmp_path, fake_runtime):
        with pytest.raises(ApplicationDirectoryError):
            RestoreManager(runtime=fake_runtime).restore(tmp_path / "missing")

    def test_single_archive_does_not_prompt(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, archive = backed_up_app
        prompt = Mock()

        report = RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0],
                                prompt=prompt).restore(app_dir)

        prompt.assert_not_called()
        assert report.archive == archive

    def test_several_archives_prompt(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, older = backed_up_app
        newer = backup(app_dir, fake_runtime, when=datetime(2024, 6, 1, 12, 0, 0))
        prompt = Mock(return_value="2")

        report = RestoreManager(runtime=fake_runtime, compose_factory=compose_factory[0],
                                prompt=prompt).restore(app_dir)

        prompt.assert_called_once_with([newer, older])
        assert report.archive == older

    def test_several_archives_explicit_index(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, _ = backed_up_app
        newer = backup(app_dir, fake_runtime, when=datetime(2024, 6, 1, 12, 0, 0))

        report = RestoreManager(runtime=fake_runtime,
                                compose_factory=compose_factory[0]).restore(app_dir, selection=1)

        assert report.archive == newer

    def test_several_archives_without_prompt(self, backed_up_app, fake_runtime, compose_factory):
        app_dir, _, _ = backed_up_app
        backup(app_dir, fake_runtime, when=datetime(2024, 6, 1, 12, 0, 0))
        factory, projects = compose_factory

        with pytest.raises(AmbiguousSelectionError):
            RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        assert projects == []


@pytest.mark.unit
class TestBrokenArchives:

    def test_corrupt_archive(self, app_factory, fake_runtime, compose_factory):
        app_dir, _ = app_factory()
        (app_dir / "myapp_backup_20240101_000000.tar.gz").write_bytes(b"garbage")

        with pytest.raises(CorruptArchiveError):
            RestoreManager(runtime=fake_runtime,
                           compose_factory=compose_factory[0]).restore(app_dir)

        assert not (app_dir / ".restore_temp").exists()

    def test_archive_without_compose_file(self, app_factory, fake_runtime, compose_factory,
                                          tmp_path):
        app_dir, _ = app_factory()
        ws = tmp_path / ".backup_temp"
        (ws / "bind_mounts" / "data").mkdir(parents=True)
        (ws / "bind_mounts" / "data" / "restored.txt").write_text("from archive")
        with tarfile.open(app_dir / "myapp_backup_20240101_000000.tar.gz", "w:gz") as tar:
            tar.add(str(ws), arcname=".backup_temp")
        factory, projects = compose_factory

        report = RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        # falls back to the compose file already in the application directory
        assert projects[0].compose_file == app_dir / "docker-compose.yml"
        assert (app_dir / "data" / "restored.txt").read_text() == "from archive"
        assert report.success

    def test_no_compose_file_anywhere(self, tmp_path, fake_runtime, compose_factory):
        app_dir = tmp_path / "bare"
        app_dir.mkdir()
        ws = tmp_path / ".backup_temp"
        (ws / "bind_mounts" / "cfg").mkdir(parents=True)
        (ws / "bind_mounts" / "cfg" / "a.conf").write_text("a")
        with tarfile.open(app_dir / "bare_backup_20240101_000000.tar.gz", "w:gz") as tar:
            tar.add(str(ws), arcname=".backup_temp")
        factory, projects = compose_factory

        report = RestoreManager(runtime=fake_runtime, compose_factory=factory).restore(app_dir)

        assert projects == []
        assert report.items[0].status == STATUS_SKIPPED
        assert (app_dir / "cfg" / "a.conf").read_text() == "a"
        assert all(i.status in (STATUS_OK, STATUS_SKIPPED) for i in report.items)
