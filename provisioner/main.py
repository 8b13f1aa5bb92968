"""
Homelab Provisioner — CLI entrypoint.

Usage (from the directory holding .env and docker-compose.yml):
    sudo homelab-provision
    sudo python -m provisioner.main

There are no subcommands and no flags: everything is read from the
environment file and the service manifest in the current directory.
Logging is tuned with PROVISION_LOG_LEVEL / PROVISION_LOG_FILE.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from provisioner.adapters import default_registry
from provisioner.core.engine.driver import ProvisioningDriver
from provisioner.core.errors import ProvisioningError
from provisioner.core.observability.logging_config import setup_logging_from_env
from provisioner.ui.cli import summary


def build_driver(workdir: Path) -> ProvisioningDriver:
    """Driver wired to the real host tools."""
    return ProvisioningDriver(
        default_registry(workdir=str(workdir)),
        workdir,
        on_stage=summary.stage_line,
    )


@click.command()
def cli() -> None:
    """Provision the homelab Docker Compose stack on this host.

    Reads .env and docker-compose.yml from the current directory, installs
    Docker, creates the data directories, opens the firewall and starts the
    stack. Safe to re-run. Must be run with sudo.
    """
    setup_logging_from_env()

    summary.banner("Homelab Docker Compose Setup")

    try:
        driver = build_driver(Path.cwd())
    except ProvisioningError as e:
        # e.g. a broken host profile, before any stage runs
        summary.error(e.tagged())
        sys.exit(1)

    report = driver.run()

    if not report.ok:
        summary.render_failure(report)
        sys.exit(report.exit_code)

    summary.render_summary(report)
    summary.render_next_steps(driver.profile.next_steps)


if __name__ == "__main__":
    cli()
