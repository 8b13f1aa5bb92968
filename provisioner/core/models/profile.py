"""
Host profile — the static desired state of a provisioned host.

Loaded from ``core/data/host_profile.yml``. Nothing here changes at
runtime: the profile says which keys must be set, which packages must be
installed, which directories and firewall rules must exist, and which
endpoints the finished stack publishes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DirectoryEntry(BaseModel):
    """One directory of the data tree, relative to the base directory."""

    path: str
    purpose: str = ""

    @field_validator("path")
    @classmethod
    def _relative(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value or ".." in value.split("/"):
            raise ValueError(f"directory path must be relative and inside the base dir: {value!r}")
        return value


class FirewallRule(BaseModel):
    """A (port, protocol) pair that must be in the allow state."""

    model_config = ConfigDict(frozen=True)

    port: int
    protocol: str = "tcp"

    @classmethod
    def parse(cls, spec: str) -> FirewallRule:
        """Parse ``"443/tcp"`` or ``"443"``."""
        port, _, protocol = spec.strip().partition("/")
        return cls(port=int(port), protocol=(protocol or "tcp").lower())

    def __str__(self) -> str:
        return f"{self.port}/{self.protocol}"


class RuntimeRepository(BaseModel):
    """Where the container runtime's apt packages come from."""

    url: str = "https://download.docker.com/linux/{distro}"
    key_url: str = "https://download.docker.com/linux/{distro}/gpg"
    keyring: str = "/etc/apt/keyrings/docker.asc"
    source_list: str = "/etc/apt/sources.list.d/docker.list"
    channel: str = "stable"


class RuntimeSpec(BaseModel):
    """The container runtime and how to install it from scratch."""

    command: str = "docker"
    group: str = "docker"
    service: str = "docker"
    legacy_packages: list[str] = Field(default_factory=list)
    packages: list[str] = Field(default_factory=list)
    repository: RuntimeRepository = Field(default_factory=RuntimeRepository)


class Endpoint(BaseModel):
    """A URL shown in the final summary.

    ``url`` is a template formatted with the environment values plus
    ``HOST_IP``.
    """

    name: str
    url: str


class HostProfile(BaseModel):
    """Everything the workflow provisions, in one validated document."""

    name: str = "homelab"
    env_file: str = ".env"
    manifest: str = "docker-compose.yml"
    base_dir_key: str = "COMMUNE_DIR"
    required_keys: list[str] = Field(default_factory=list)

    packages: list[str] = Field(default_factory=list)
    runtime: RuntimeSpec = Field(default_factory=RuntimeSpec)

    directories: list[DirectoryEntry] = Field(default_factory=list)
    dir_mode: int = 0o755
    file_mode: int = 0o644

    admin_rule: FirewallRule = Field(default_factory=lambda: FirewallRule(port=22))
    firewall: list[FirewallRule] = Field(default_factory=list)

    endpoints: list[Endpoint] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)

    @field_validator("admin_rule", mode="before")
    @classmethod
    def _parse_admin_rule(cls, value: object) -> object:
        if isinstance(value, (str, int)):
            return FirewallRule.parse(str(value))
        return value

    @field_validator("firewall", mode="before")
    @classmethod
    def _parse_rules(cls, value: object) -> object:
        if isinstance(value, list):
            return [
                FirewallRule.parse(str(item)) if isinstance(item, (str, int)) else item
                for item in value
            ]
        return value

    @field_validator("dir_mode", "file_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value: object) -> object:
        # octal strings only; ints are taken as already-numeric modes
        if isinstance(value, str):
            return int(value, 8)
        return value
