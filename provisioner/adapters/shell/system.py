"""
System adapter — users, groups, systemd units and host facts.

The small host commands the installer needs that belong to neither the
package manager nor the firewall nor docker.
"""

from __future__ import annotations

import logging
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

logger = logging.getLogger(__name__)

# operation → systemctl verb
_UNIT_COMMANDS = {
    "start": "start",
    "enable": "enable",
    "unit_active": "is-active",
    "unit_enabled": "is-enabled",
}


class SystemAdapter(Adapter):
    """Host administration commands.

    Operations:
        groups (target=user): space-separated group names of the user.
        add_to_group (target=user, group=str): ``usermod -aG group user``.
        unit_active / unit_enabled (target=unit): ok when active/enabled.
        start / enable (target=unit): ``systemctl start|enable unit``.
        fetch (target=url, dest=path): download a file with curl.
        arch: ``dpkg --print-architecture``.
        host_ip: first address reported by ``hostname -I``.
    """

    operations = frozenset({"groups", "add_to_group", "fetch", "arch", "host_ip", *_UNIT_COMMANDS})
    _needs_target = frozenset({"groups", "add_to_group", "fetch", *_UNIT_COMMANDS})

    @property
    def name(self) -> str:
        return "system"

    def is_available(self) -> bool:
        return shutil.which("systemctl") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, msg = super().validate(context)
        if not valid:
            return valid, msg

        action = context.action
        if action.operation in self._needs_target and not action.target:
            return False, f"{action.operation} needs a target"
        if action.operation == "add_to_group" and not action.params.get("group"):
            return False, "Missing required param: 'group'"
        if action.operation == "fetch" and not action.params.get("dest"):
            return False, "Missing required param: 'dest'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        operation = action.operation

        if operation == "groups":
            return self._run(context, ["id", "-nG", action.target], timeout=10)
        if operation == "add_to_group":
            return self._run(context, ["usermod", "-aG", action.params["group"], action.target], timeout=30)
        if operation in _UNIT_COMMANDS:
            return self._run(context, ["systemctl", _UNIT_COMMANDS[operation], action.target], timeout=120)
        if operation == "fetch":
            return self._run(
                context,
                ["curl", "-fsSL", action.target, "-o", action.params["dest"]],
                timeout=120,
            )
        if operation == "arch":
            return self._run(context, ["dpkg", "--print-architecture"], timeout=10)
        if operation == "host_ip":
            return self._host_ip(context)
        return Receipt.failure(
            adapter=self.name,
            action_id=action.id,
            error=f"Unknown operation: {operation}",
        )

    def _host_ip(self, ctx: ExecutionContext) -> Receipt:
        receipt = self._run(ctx, ["hostname", "-I"], timeout=10)
        if not receipt.ok:
            return receipt
        addresses = receipt.output.split()
        if not addresses:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error="hostname -I reported no addresses",
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=addresses[0],
            metadata={"addresses": addresses},
        )
