"""Homelab Provisioner — idempotent single-host Docker Compose provisioning."""

__version__ = "0.1.0"
