"""
Packaged data — the default host profile.

``host_profile.yml`` ships inside the package and is read once per
process. Tests and alternative hosts can load a different file with
``load_profile(path)``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import ValidationError

from provisioner.core.errors import ConfigError
from provisioner.core.models.profile import HostProfile

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent
DEFAULT_PROFILE = _DATA_DIR / "host_profile.yml"


class ProfileError(ConfigError):
    """The host profile is missing or does not validate."""


def load_profile(path: Path | None = None) -> HostProfile:
    """Load and validate a host profile YAML file.

    Raises:
        ProfileError: If the file is missing, not YAML, or invalid.
    """
    path = path or DEFAULT_PROFILE
    if not path.is_file():
        raise ProfileError(f"Host profile not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ProfileError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ProfileError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        profile = HostProfile.model_validate(data)
    except ValidationError as e:
        raise ProfileError(f"Invalid host profile {path}: {e}") from e

    logger.debug(
        "Loaded host profile '%s': %d packages, %d directories, %d firewall rules plus admin %s",
        profile.name,
        len(profile.packages),
        len(profile.directories),
        len(profile.firewall),
        profile.admin_rule,
    )
    return profile


@lru_cache(maxsize=1)
def default_profile() -> HostProfile:
    """The packaged profile, cached for the process lifetime."""
    return load_profile(DEFAULT_PROFILE)
