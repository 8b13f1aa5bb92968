"""
Firewall configurator — a minimal allow-list on the host firewall.

Ordering is load-bearing: the administrative SSH rule is added before
any other rule and before the firewall is enabled, because enabling a
default-deny firewall without it locks the operator out.

Idempotency: current rules are read first and only missing ones are
added; the firewall is enabled only when it is not already active.
Unrelated existing rules are never touched.
"""

from __future__ import annotations

import logging

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import FirewallError
from provisioner.core.models.profile import FirewallRule
from provisioner.core.models.run import StageResult, StageStatus

logger = logging.getLogger(__name__)

STAGE = "firewall"

# Application profiles that ufw may list instead of a port
_APP_PROFILES = {
    "openssh": [FirewallRule(port=22, protocol="tcp")],
    "ssh": [FirewallRule(port=22, protocol="tcp")],
}


def parse_active(status_output: str) -> bool:
    """Whether ``ufw status`` reports an active firewall."""
    for line in status_output.splitlines():
        key, _, value = line.partition(":")
        if key.strip().lower() == "status":
            return value.strip().lower() == "active"
    return False


def parse_added_rules(added_output: str) -> set[FirewallRule]:
    """Simple allow rules from ``ufw show added``.

    Only plain ``ufw allow PORT[/PROTO]`` rules (and known app profiles)
    are recognised; rules with from/to clauses are ignored, since they
    do not grant general access to the port.
    """
    rules: set[FirewallRule] = set()
    for line in added_output.splitlines():
        tokens = line.split()
        if len(tokens) != 3 or tokens[0] != "ufw" or tokens[1] != "allow":
            continue
        spec = tokens[2]
        if spec.lower() in _APP_PROFILES:
            rules.update(_APP_PROFILES[spec.lower()])
            continue
        port, _, protocol = spec.partition("/")
        if not port.isdigit():
            continue
        if protocol:
            rules.add(FirewallRule(port=int(port), protocol=protocol.lower()))
        else:
            # no protocol means both
            rules.add(FirewallRule(port=int(port), protocol="tcp"))
            rules.add(FirewallRule(port=int(port), protocol="udp"))
    return rules


class FirewallConfigurator:
    """Ensure allow rules exist and the firewall is active."""

    def __init__(
        self,
        registry: AdapterRegistry,
        admin_rule: FirewallRule | None = None,
    ):
        self._registry = registry
        self._admin_rule = admin_rule or FirewallRule(port=22, protocol="tcp")

    def ordered(self, rules: list[FirewallRule]) -> list[FirewallRule]:
        """Admin rule first, then ``rules`` in order, without duplicates."""
        ordered = [self._admin_rule]
        for rule in rules:
            if rule not in ordered:
                ordered.append(rule)
        return ordered

    def ensure_rules(self, rules: list[FirewallRule]) -> StageResult:
        """Add missing rules and enable the firewall if inactive.

        Returns a Skipped result when ufw is not installed.

        Raises:
            FirewallError: If the state cannot be read or a change fails.
        """
        if not self._registry.is_available("ufw"):
            logger.warning("UFW not found. Please configure firewall manually.")
            return StageResult(
                stage=STAGE,
                status=StageStatus.SKIPPED,
                detail="ufw not installed; configure the firewall manually",
            )

        active = self.is_active()
        present = self.current_rules()

        added: list[FirewallRule] = []
        for rule in self.ordered(rules):
            if rule in present:
                logger.debug("Rule %s already allowed", rule)
                continue
            receipt = self._registry.run("ufw", "allow", str(rule))
            if not receipt.ok:
                raise FirewallError(f"Cannot allow {rule}: {receipt.error}", detail=receipt.error)
            logger.info("Allowed %s", rule)
            added.append(rule)
            present.add(rule)

        enabled = False
        if not active:
            logger.warning("Enabling UFW firewall. Make sure you can still access SSH!")
            receipt = self._registry.run("ufw", "enable")
            if not receipt.ok:
                raise FirewallError(f"Cannot enable ufw: {receipt.error}", detail=receipt.error)
            enabled = True

        detail = (
            f"{len(added)} rule(s) added"
            + (f" ({', '.join(str(r) for r in added)})" if added else "")
            + ("; firewall enabled" if enabled else "; firewall already active")
        )
        logger.info("Firewall rules configured: %s", detail)
        return StageResult(stage=STAGE, status=StageStatus.SUCCESS, detail=detail)

    def is_active(self) -> bool:
        receipt = self._registry.run("ufw", "status")
        if not receipt.ok:
            raise FirewallError(f"Cannot read firewall status: {receipt.error}", detail=receipt.error)
        return parse_active(receipt.output)

    def current_rules(self) -> set[FirewallRule]:
        receipt = self._registry.run("ufw", "added")
        if not receipt.ok:
            raise FirewallError(f"Cannot read firewall rules: {receipt.error}", detail=receipt.error)
        return parse_added_rules(receipt.output)
