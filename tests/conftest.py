"""
Shared test fixtures and configuration.

Every host tool except the filesystem is a MockAdapter; the filesystem
stage runs for real inside ``tmp_path``, owned by the current user.
"""

from __future__ import annotations

import os
import pwd
import textwrap
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry
from provisioner.adapters.shell.filesystem import FilesystemAdapter
from provisioner.core.data import default_profile
from provisioner.core.engine.driver import ProvisioningDriver
from provisioner.core.models.profile import HostProfile

REQUIRED_KEYS = [
    "COMMUNE_DIR",
    "PUID",
    "PGID",
    "TZ",
    "URL",
    "DUCKDNSTOKEN",
    "EMAIL",
    "ADMIN_NAME",
    "ADMIN_PASSWORD",
    "DB_ROOT_PASSWORD",
    "DB_NC_PASSWORD",
    "REDIS_PASSWORD",
]

MANIFEST = textwrap.dedent("""\
    services:
      swag:
        image: lscr.io/linuxserver/swag
      nextcloud:
        image: lscr.io/linuxserver/nextcloud
      jellyfin:
        image: lscr.io/linuxserver/jellyfin
      mariadb:
        image: lscr.io/linuxserver/mariadb
      redis:
        image: redis:alpine
""")

SERVICES = ["swag", "nextcloud", "jellyfin", "mariadb", "redis"]

OS_RELEASE = textwrap.dedent("""\
    PRETTY_NAME="Ubuntu 24.04.1 LTS"
    NAME="Ubuntu"
    VERSION_ID="24.04"
    VERSION_CODENAME=noble
    ID=ubuntu
    ID_LIKE=debian
    UBUNTU_CODENAME=noble
""")


def write_env(path: Path, values: dict[str, str]) -> Path:
    lines = ["# homelab settings", ""]
    lines += [f'{key}="{value}"' for key, value in values.items()]
    path.write_text("\n".join(lines) + "\n")
    return path


def ps_json(services: list[str], state: str = "running") -> str:
    return "\n".join(
        f'{{"Name": "{name}", "Service": "{name}", "State": "{state}", '
        f'"Health": "", "Status": "Up 10 seconds"}}'
        for name in services
    )


@pytest.fixture
def current_user() -> str:
    return pwd.getpwuid(os.getuid()).pw_name


@pytest.fixture
def env_values(tmp_path: Path) -> dict[str, str]:
    """A complete, valid set of environment values."""
    return {
        "COMMUNE_DIR": str(tmp_path / "commune") + "/",
        "PUID": str(os.getuid()),
        "PGID": str(os.getgid()),
        "TZ": "Europe/Paris",
        "URL": "example.duckdns.org",
        "DUCKDNSTOKEN": "token-123",
        "EMAIL": "admin@example.org",
        "ADMIN_NAME": "admin",
        "ADMIN_PASSWORD": "s3cret",
        "DB_ROOT_PASSWORD": "root-pw",
        "DB_NC_PASSWORD": "nc-pw",
        "REDIS_PASSWORD": "redis-pw",
    }


@pytest.fixture
def workdir(tmp_path: Path, env_values: dict[str, str]) -> Path:
    """Directory holding a valid .env and docker-compose.yml."""
    work = tmp_path / "work"
    work.mkdir()
    write_env(work / ".env", env_values)
    (work / "docker-compose.yml").write_text(MANIFEST)
    return work


@pytest.fixture
def os_release(tmp_path: Path) -> Path:
    path = tmp_path / "os-release"
    path.write_text(OS_RELEASE)
    return path


@pytest.fixture
def profile(tmp_path: Path) -> HostProfile:
    """The packaged profile with the runtime's apt files moved into tmp_path."""
    base = default_profile()
    repo = base.runtime.repository.model_copy(update={
        "keyring": str(tmp_path / "keyrings" / "docker.asc"),
        "source_list": str(tmp_path / "sources.list.d" / "docker.list"),
    })
    runtime = base.runtime.model_copy(update={"repository": repo})
    return base.model_copy(update={"runtime": runtime})


@pytest.fixture
def mocks() -> dict[str, MockAdapter]:
    return {
        name: MockAdapter(adapter_name=name)
        for name in ("apt", "ufw", "docker", "system")
    }


@pytest.fixture
def registry(mocks: dict[str, MockAdapter], tmp_path: Path) -> AdapterRegistry:
    reg = AdapterRegistry(workdir=str(tmp_path))
    for adapter in mocks.values():
        reg.register(adapter)
    reg.register(FilesystemAdapter())
    return reg


@pytest.fixture
def as_root(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(os, "geteuid", lambda: 0)


# ── Whole-run fixtures ───────────────────────────────────────────────


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_driver(registry, workdir, profile, os_release, sleeps, current_user, as_root):
    def _make(**kwargs) -> ProvisioningDriver:
        kwargs.setdefault("environ", {"SUDO_USER": current_user})
        return ProvisioningDriver(
            registry,
            workdir,
            profile,
            sleep=sleeps.append,
            os_release=str(os_release),
            **kwargs,
        )
    return _make


@pytest.fixture
def stack(mocks: dict[str, MockAdapter], workdir: Path) -> MockAdapter:
    """Docker mock that reports every declared service running."""
    docker = mocks["docker"]
    manifest = workdir / "docker-compose.yml"
    docker.set_output(f"docker:services:{manifest}", "\n".join(SERVICES))
    docker.set_output(f"docker:ps:{manifest}", ps_json(SERVICES))
    docker.set_output("docker:compose_version", "2.29.1")
    mocks["system"].set_output("system:host_ip", "192.168.1.20")
    return docker


@pytest.fixture
def fresh_host(mocks: dict[str, MockAdapter], profile: HostProfile, stack: MockAdapter) -> None:
    """Nothing installed, firewall off, the key download simulated on disk."""
    apt = mocks["apt"]
    for package in profile.packages:
        apt.set_failure(f"apt:query:{package}", error="no packages found matching")
    stack.set_failure("docker:version", error="docker: command not found")
    mocks["system"].set_output("system:arch", "amd64")
    mocks["ufw"].set_output("ufw:status", "Status: inactive")
    mocks["ufw"].set_output("ufw:added", "(None)")
    keyring = Path(profile.runtime.repository.keyring)
    keyring.parent.mkdir(parents=True)
    keyring.write_text("key")


@pytest.fixture
def provisioned_host(mocks: dict[str, MockAdapter], stack: MockAdapter, current_user: str) -> None:
    """Everything already in place from an earlier run."""
    mocks["system"].set_output(f"system:groups:{current_user}", f"{current_user} docker")
    mocks["ufw"].set_output("ufw:status", "Status: active")
    mocks["ufw"].set_output(
        "ufw:added",
        "ufw allow 22/tcp\nufw allow 80/tcp\nufw allow 443/tcp\nufw allow 8099/tcp",
    )
