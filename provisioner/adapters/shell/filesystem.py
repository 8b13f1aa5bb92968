"""
Filesystem adapter — directory, ownership and permission operations.

Nothing in here deletes or truncates: ``mkdir`` on an existing directory
is a no-op, and the tree operations only touch ownership and mode bits.
``write`` is the one operation that replaces content, and is only used
for files the workflow owns (the runtime's apt source list).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Operations (target is the path, relative to the workdir or absolute):
        read: file contents.
        write (content=str): write a text file, creating parents.
        mkdir (mode=int, optional): create directory and parents.
        chmod (mode=int): set the mode of a single path.
        chown_tree (uid=int, gid=int): recursive ownership change.
        chmod_tree (dir_mode=int, file_mode=int): recursive mode change.
    """

    operations = frozenset({"read", "write", "mkdir", "chmod", "chown_tree", "chmod_tree"})

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, msg = super().validate(context)
        if not valid:
            return valid, msg

        action = context.action
        if not action.target:
            return False, "Missing target path"
        if action.operation == "write" and "content" not in action.params:
            return False, "Missing required param: 'content' for write operation"
        if action.operation == "chmod" and "mode" not in action.params:
            return False, "Missing required param: 'mode' for chmod operation"
        if action.operation == "chown_tree":
            for key in ("uid", "gid"):
                if not isinstance(action.params.get(key), int):
                    return False, f"Missing or non-integer param: '{key}'"
        if action.operation == "chmod_tree":
            for key in ("dir_mode", "file_mode"):
                if not isinstance(action.params.get(key), int):
                    return False, f"Missing or non-integer param: '{key}'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.operation
        target = Path(context.action.target)
        if not target.is_absolute():
            target = Path(context.workdir) / target

        try:
            if operation == "read":
                return self._read(context, target)
            elif operation == "write":
                return self._write(context, target)
            elif operation == "mkdir":
                return self._mkdir(context, target)
            elif operation == "chmod":
                return self._chmod(context, target)
            elif operation == "chown_tree":
                return self._chown_tree(context, target)
            elif operation == "chmod_tree":
                return self._chmod_tree(context, target)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown operation: {operation}",
                )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _read(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {target}",
            )
        content = target.read_text(encoding="utf-8")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=content,
            metadata={"path": str(target), "size": len(content)},
        )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content = ctx.action.params["content"]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(content)} bytes to {target}",
            metadata={"path": str(target), "size": len(content)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.exists() and not target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Path exists and is not a directory: {target}",
            )
        created = not target.exists()
        target.mkdir(parents=True, exist_ok=True)
        mode = ctx.action.params.get("mode")
        if mode is not None:
            target.chmod(mode)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory {'created' if created else 'exists'}: {target}",
            metadata={"path": str(target), "created": created},
        )

    def _chmod(self, ctx: ExecutionContext, target: Path) -> Receipt:
        target.chmod(ctx.action.params["mode"])
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Mode {ctx.action.params['mode']:o} set on {target}",
        )

    def _chown_tree(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a directory: {target}",
            )
        uid = ctx.action.params["uid"]
        gid = ctx.action.params["gid"]
        count = 0
        # lchown: symlinks are re-owned, never followed out of the tree
        os.lchown(target, uid, gid)
        count += 1
        for root, dirs, files in os.walk(target):
            for entry in (*dirs, *files):
                os.lchown(os.path.join(root, entry), uid, gid)
                count += 1
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Ownership {uid}:{gid} set on {count} paths under {target}",
            metadata={"path": str(target), "count": count},
        )

    def _chmod_tree(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a directory: {target}",
            )
        dir_mode = ctx.action.params["dir_mode"]
        file_mode = ctx.action.params["file_mode"]
        dirs_changed = files_changed = 0
        target.chmod(dir_mode)
        dirs_changed += 1
        for root, dirs, files in os.walk(target):
            for name in dirs:
                path = os.path.join(root, name)
                if not os.path.islink(path):
                    os.chmod(path, dir_mode)
                    dirs_changed += 1
            for name in files:
                path = os.path.join(root, name)
                if not os.path.islink(path):
                    os.chmod(path, file_mode)
                    files_changed += 1
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Modes set on {dirs_changed} directories and {files_changed} files under {target}",
            metadata={"path": str(target), "dirs": dirs_changed, "files": files_changed},
        )
