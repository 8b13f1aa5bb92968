"""
Filesystem provisioner — the data directory tree.

Creates missing directories, then normalises ownership and modes across
the whole base tree. Existing directories and files are never removed,
truncated or rewritten; only ownership and mode bits change.
"""

from __future__ import annotations

import logging
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import FilesystemError
from provisioner.core.models.profile import DirectoryEntry

logger = logging.getLogger(__name__)


class FilesystemProvisioner:
    """Ensure the directory spec exists under a base directory."""

    def __init__(self, registry: AdapterRegistry):
        self._registry = registry

    def ensure(
        self,
        base_dir: Path,
        spec: list[DirectoryEntry],
        owner: tuple[int, int],
        dir_mode: int = 0o755,
        file_mode: int = 0o644,
    ) -> list[Path]:
        """Create the tree and apply ownership/modes.

        Returns the directories that did not exist before this call.

        Raises:
            FilesystemError: If any directory cannot be created or the
                ownership/mode pass fails.
        """
        logger.info("Creating directory structure at %s", base_dir)
        created: list[Path] = []

        for path in [base_dir, *(base_dir / entry.path for entry in spec)]:
            receipt = self._registry.run("filesystem", "mkdir", str(path))
            if not receipt.ok:
                raise FilesystemError(f"Cannot create {path}: {receipt.error}", detail=receipt.error)
            if receipt.metadata.get("created"):
                created.append(path)
                logger.debug("Created directory: %s", path)

        uid, gid = owner
        logger.info("Setting ownership %d:%d on %s", uid, gid, base_dir)
        receipt = self._registry.run("filesystem", "chown_tree", str(base_dir), uid=uid, gid=gid)
        if not receipt.ok:
            raise FilesystemError(
                f"Cannot set ownership on {base_dir}: {receipt.error}", detail=receipt.error
            )

        logger.info("Setting permissions on %s (dirs %o, files %o)", base_dir, dir_mode, file_mode)
        receipt = self._registry.run(
            "filesystem",
            "chmod_tree",
            str(base_dir),
            dir_mode=dir_mode,
            file_mode=file_mode,
        )
        if not receipt.ok:
            raise FilesystemError(
                f"Cannot set permissions on {base_dir}: {receipt.error}", detail=receipt.error
            )

        return created
