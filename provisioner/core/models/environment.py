"""
EnvironmentDescription — the parsed ``.env`` file.

Immutable once loaded. Every component receives it explicitly instead of
reading process-wide environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from provisioner.core.errors import ConfigError


class EnvironmentDescription(BaseModel):
    """Key/value pairs loaded from an environment file."""

    model_config = ConfigDict(frozen=True)

    source: str = ""
    values: dict[str, str] = Field(default_factory=dict)

    # ── Mapping-like access ─────────────────────────────────────

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def keys(self) -> list[str]:
        return list(self.values)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def as_dict(self) -> dict[str, str]:
        return dict(self.values)

    # ── Typed accessors ─────────────────────────────────────────

    def base_dir(self, key: str = "COMMUNE_DIR") -> Path:
        """Data root with any trailing slash removed.

        The filesystem root is rejected: the whole tree under the data root
        gets re-owned and re-moded.
        """
        raw = self.values.get(key, "")
        if not raw:
            raise ConfigError(f"{key} is not set", missing_keys=[key])
        stripped = raw.rstrip("/")
        if not stripped:
            raise ConfigError(f"{key} must not be the filesystem root, got {raw!r}")
        return Path(stripped)

    def numeric_id(self, key: str) -> int:
        """Integer value of a uid/gid key."""
        raw = self.values.get(key, "")
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{key} must be a numeric id, got {raw!r}") from None

    @property
    def owner(self) -> tuple[int, int]:
        """``(PUID, PGID)`` for provisioned directories."""
        return self.numeric_id("PUID"), self.numeric_id("PGID")
