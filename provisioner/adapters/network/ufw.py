"""
UFW adapter — the host firewall.

``ufw status`` only lists rules while the firewall is active, so the
configured rules are read with ``ufw show added``, which works in
either state.
"""

from __future__ import annotations

import re
import shutil

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt

_RULE_RE = re.compile(r"^\d+(?::\d+)?(?:/(?:tcp|udp))?$")


class UfwAdapter(Adapter):
    """Uncomplicated Firewall operations.

    Operations:
        status: raw ``ufw status`` output.
        added: raw ``ufw show added`` output.
        allow (target="443/tcp"): add an allow rule.
        enable: enable the firewall without the interactive prompt.
    """

    operations = frozenset({"status", "added", "allow", "enable"})

    @property
    def name(self) -> str:
        return "ufw"

    def is_available(self) -> bool:
        return shutil.which("ufw") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        valid, msg = super().validate(context)
        if not valid:
            return valid, msg
        if context.action.operation == "allow":
            rule = context.action.target
            if not _RULE_RE.match(rule):
                return False, f"Invalid rule '{rule}' (expected PORT[/tcp|udp])"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.action.operation
        if operation == "status":
            return self._run(context, ["ufw", "status"], timeout=30)
        if operation == "added":
            return self._run(context, ["ufw", "show", "added"], timeout=30)
        if operation == "allow":
            return self._run(context, ["ufw", "allow", context.action.target], timeout=30)
        if operation == "enable":
            return self._run(context, ["ufw", "--force", "enable"], timeout=60)
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=f"Unknown operation: {operation}",
        )
