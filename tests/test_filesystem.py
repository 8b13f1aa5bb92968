"""
Tests for FilesystemProvisioner — runs against a real tree in tmp_path.
"""

import os
import stat
from pathlib import Path

import pytest

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import FilesystemError
from provisioner.core.models.profile import DirectoryEntry, HostProfile
from provisioner.core.services.filesystem import FilesystemProvisioner


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def _snapshot(base: Path) -> dict[str, bytes]:
    return {
        str(p.relative_to(base)): p.read_bytes()
        for p in base.rglob("*")
        if p.is_file()
    }


@pytest.fixture
def provisioner(registry: AdapterRegistry) -> FilesystemProvisioner:
    return FilesystemProvisioner(registry)


@pytest.fixture
def base(tmp_path: Path) -> Path:
    return tmp_path / "commune"


@pytest.fixture
def owner() -> tuple[int, int]:
    return os.getuid(), os.getgid()


class TestEnsure:
    def test_creates_every_directory(self, provisioner, base, owner, profile: HostProfile):
        created = provisioner.ensure(base, profile.directories, owner)
        for entry in profile.directories:
            assert (base / entry.path).is_dir()
        assert base in created
        assert base / "nextcloud" / "data" in created

    def test_second_run_creates_nothing(self, provisioner, base, owner, profile: HostProfile):
        provisioner.ensure(base, profile.directories, owner)
        assert provisioner.ensure(base, profile.directories, owner) == []

    def test_existing_files_untouched(self, provisioner, base, owner, profile: HostProfile):
        data = base / "nextcloud" / "data"
        data.mkdir(parents=True)
        (data / "photo.jpg").write_bytes(b"\xff\xd8\xff\xe0 jpeg")
        (base / "mysql").mkdir()
        (base / "mysql" / "ibdata1").write_bytes(b"\x00" * 64)
        before = _snapshot(base)

        provisioner.ensure(base, profile.directories, owner)
        provisioner.ensure(base, profile.directories, owner)

        assert _snapshot(base) == before

    def test_unrelated_directories_kept(self, provisioner, base, owner, profile: HostProfile):
        (base / "backups").mkdir(parents=True)
        provisioner.ensure(base, profile.directories, owner)
        assert (base / "backups").is_dir()

    def test_modes_normalised(self, provisioner, base, owner, profile: HostProfile):
        (base / "redis" / "data").mkdir(parents=True, mode=0o700)
        dump = base / "redis" / "data" / "dump.rdb"
        dump.write_text("x")
        dump.chmod(0o600)

        provisioner.ensure(base, profile.directories, owner, dir_mode=0o755, file_mode=0o644)

        assert _mode(base) == 0o755
        assert _mode(base / "redis" / "data") == 0o755
        assert _mode(base / "jellyfin" / "cache") == 0o755
        assert _mode(dump) == 0o644

    def test_ownership(self, provisioner, base, owner, profile: HostProfile):
        provisioner.ensure(base, profile.directories, owner)
        info = (base / "swag" / "config").stat()
        assert (info.st_uid, info.st_gid) == owner

    def test_nested_spec(self, provisioner, base, owner):
        spec = [DirectoryEntry(path="a/b/c"), DirectoryEntry(path="a/d")]
        provisioner.ensure(base, spec, owner)
        assert (base / "a" / "b" / "c").is_dir()
        assert (base / "a" / "d").is_dir()

    def test_file_in_the_way_fails(self, provisioner, base, owner):
        base.mkdir()
        (base / "swag").write_text("not a directory")
        with pytest.raises(FilesystemError, match="swag"):
            provisioner.ensure(base, [DirectoryEntry(path="swag/config")], owner)
        assert (base / "swag").read_text() == "not a directory"


class TestDirectoryEntry:
    def test_rejects_parent_escape(self):
        with pytest.raises(ValueError):
            DirectoryEntry(path="../etc")

    def test_strips_slashes(self):
        assert DirectoryEntry(path="/nextcloud/data/").path == "nextcloud/data"
