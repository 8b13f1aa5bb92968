"""
Stack orchestrator — delegates everything to ``docker compose``.

The manifest is opaque here: validation is the compose tool's own
``config`` check, and ``up`` is a single declarative call whose
reconciliation is entirely compose's business. After launch the
orchestrator waits a fixed grace period and reads status once; it does
not poll for readiness or retry failed services.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path

from provisioner.adapters.registry import AdapterRegistry
from provisioner.core.errors import OrchestrationError
from provisioner.core.models.run import ServiceStatus

logger = logging.getLogger(__name__)

# Fixed wait between ``up`` and the single status read. Not configurable.
GRACE_PERIOD_SECONDS = 10


def parse_ps_output(output: str) -> list[ServiceStatus]:
    """Parse ``docker compose ps --format json``.

    Compose v2 prints one JSON object per line; older releases print a
    single JSON array. Both are accepted; unparseable lines are skipped.
    """
    output = output.strip()
    if not output:
        return []

    records: list[dict] = []
    if output.startswith("["):
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            logger.warning("Unparseable compose ps output: %s", e)
            return []
        records = [item for item in data if isinstance(item, dict)]
    else:
        for line_num, line in enumerate(output.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Skipping unparseable compose ps line %d: %s", line_num, e)
                continue
            if isinstance(item, dict):
                records.append(item)

    statuses: list[ServiceStatus] = []
    for item in records:
        name = item.get("Service") or item.get("Name") or ""
        if not name:
            continue
        statuses.append(ServiceStatus(
            name=name,
            state=(item.get("State") or "unknown").lower(),
            health=item.get("Health") or "",
            status=item.get("Status") or "",
        ))
    return statuses


class StackOrchestrator:
    """Validate, launch, inspect and tear down the compose stack."""

    def __init__(
        self,
        registry: AdapterRegistry,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._registry = registry
        self._sleep = sleep

    def validate(self, manifest: Path) -> bool:
        """Check the manifest with ``docker compose config``.

        Raises:
            OrchestrationError: If compose rejects the manifest.
        """
        logger.info("Validating Docker Compose configuration")
        receipt = self._registry.run("docker", "config", str(manifest))
        if not receipt.ok:
            raise OrchestrationError(
                "Docker Compose configuration is invalid. "
                f"Please check your {manifest.name} and .env files.",
                detail=receipt.error,
            )
        return True

    def up(self, manifest: Path) -> None:
        logger.info("Starting Docker Compose stack")
        receipt = self._registry.run("docker", "up", str(manifest))
        if not receipt.ok:
            raise OrchestrationError(f"docker compose up failed: {receipt.error}", detail=receipt.error)

    def down(self, manifest: Path) -> None:
        logger.info("Stopping Docker Compose stack")
        receipt = self._registry.run("docker", "down", str(manifest))
        if not receipt.ok:
            raise OrchestrationError(f"docker compose down failed: {receipt.error}", detail=receipt.error)

    def declared_services(self, manifest: Path) -> list[str]:
        receipt = self._registry.run("docker", "services", str(manifest))
        if not receipt.ok:
            raise OrchestrationError(
                f"Cannot list services in {manifest.name}: {receipt.error}", detail=receipt.error
            )
        return [line.strip() for line in receipt.output.splitlines() if line.strip()]

    def status(self, manifest: Path) -> list[ServiceStatus]:
        """One status read covering every declared service.

        Declared services that compose does not report are listed with
        state ``missing``.
        """
        receipt = self._registry.run("docker", "ps", str(manifest))
        if not receipt.ok:
            raise OrchestrationError(
                f"Cannot read service status: {receipt.error}", detail=receipt.error
            )
        reported = {s.name: s for s in parse_ps_output(receipt.output)}

        statuses: list[ServiceStatus] = []
        for name in self.declared_services(manifest):
            statuses.append(reported.pop(name, None) or ServiceStatus(name=name, state="missing"))
        # anything compose reports that the manifest no longer declares
        statuses.extend(reported.values())
        return statuses

    def launch(self, manifest: Path) -> list[ServiceStatus]:
        """``up``, wait the grace period, then read status once."""
        self.up(manifest)
        logger.info("Waiting %ds for services to initialize", GRACE_PERIOD_SECONDS)
        self._sleep(GRACE_PERIOD_SECONDS)
        return self.status(manifest)
