"""
Environment file loader — reads ``.env`` into an EnvironmentDescription.

Handles:
- KEY=value
- KEY="value" / KEY='value' (one level of matching quotes stripped)
- export KEY=value
- Comments (#) and empty lines
- Duplicate keys: the last occurrence wins
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from provisioner.core.errors import ConfigError
from provisioner.core.models.environment import EnvironmentDescription

logger = logging.getLogger(__name__)

ENV_FILE = ".env"


def parse_env_lines(content: str) -> dict[str, str]:
    """Parse the text of an environment file into a dict."""
    values: dict[str, str] = {}
    for line_num, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:].strip()

        if "=" not in line:
            logger.debug("Ignoring line %d without '=': %r", line_num, line)
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if not key:
            logger.debug("Ignoring line %d with empty key", line_num)
            continue

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        if key in values:
            logger.debug("Duplicate key %s on line %d, last value wins", key, line_num)
        values[key] = value
    return values


def load(path: Path | str) -> EnvironmentDescription:
    """Load an environment file.

    Raises:
        ConfigError: If the file does not exist or cannot be read.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(
            f"{path} not found. Copy .env.example to .env and configure it first."
        )

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    values = parse_env_lines(content)
    logger.info("Loaded %d variables from %s", len(values), path)
    return EnvironmentDescription(source=str(path), values=values)


def missing_keys(desc: EnvironmentDescription, required_keys: Iterable[str]) -> list[str]:
    """Required keys that are absent or empty, in required order."""
    missing: list[str] = []
    for key in required_keys:
        value = desc.get(key)
        if value is None or not value.strip():
            if key not in missing:
                missing.append(key)
    return missing


def validate(desc: EnvironmentDescription, required_keys: Iterable[str]) -> None:
    """Check that every required key is present and non-empty.

    Raises:
        ConfigError: Listing every missing or empty key, not just the first.
    """
    missing = missing_keys(desc, required_keys)
    if missing:
        raise ConfigError(
            "Required environment variables missing or empty in "
            f"{desc.source or ENV_FILE}: {', '.join(missing)}",
            missing_keys=missing,
        )
    logger.info("Environment variables validated successfully")
