"""Configuration — the ``.env`` file and the packaged host profile."""

from provisioner.core.config import env_loader
from provisioner.core.data import ProfileError, default_profile, load_profile

__all__ = ["ProfileError", "default_profile", "env_loader", "load_profile"]
