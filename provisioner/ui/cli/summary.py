"""
Terminal output — banner, per-stage progress lines and the final summary.
"""

from __future__ import annotations

import click

from provisioner.core.models.run import RunReport, StageResult, StageStatus

_STAGE_LABELS = {
    "config": "Environment variables loaded and validated",
    "preflight": "Host prerequisites satisfied",
    "packages": "Packages and container runtime ready",
    "filesystem": "Directory structure, ownership and permissions set",
    "firewall": "Firewall rules configured",
    "stack": "Docker Compose stack started",
}

_STATE_COLOURS = {
    "running": "green",
    "restarting": "yellow",
    "created": "yellow",
    "missing": "red",
    "exited": "red",
    "dead": "red",
}


def info(message: str) -> None:
    click.echo(click.style("[INFO]", fg="green") + f" {message}")


def warning(message: str) -> None:
    click.echo(click.style("[WARN]", fg="yellow") + f" {message}")


def error(message: str) -> None:
    click.echo(click.style("[ERROR]", fg="red") + f" {message}", err=True)


def banner(title: str) -> None:
    line = "=" * 46
    click.secho(line, fg="green")
    click.secho(f"    {title}", fg="green")
    click.secho(line, fg="green")
    click.echo()


def stage_line(result: StageResult) -> None:
    """Print one line as each stage finishes.

    Failed stages print nothing here; ``render_failure`` reports them.
    """
    label = _STAGE_LABELS.get(result.stage, result.stage)
    suffix = f" ({result.detail})" if result.detail else ""
    if result.status == StageStatus.SUCCESS:
        info(f"{label}{suffix}")
    elif result.status == StageStatus.SKIPPED:
        warning(f"{result.stage} skipped{suffix}")


def render_failure(report: RunReport) -> None:
    click.echo()
    error(report.error or "Provisioning failed")
    if report.missing_keys:
        click.echo("  Set these variables in .env:", err=True)
        for key in report.missing_keys:
            click.echo(f"    • {key}", err=True)
    click.echo(f"  Stopped after state: {report.history[-2].value}", err=True)


def render_summary(report: RunReport) -> None:
    """Status table, quick reference, notes and next steps."""
    click.echo()
    info("Service status:")
    width = max((len(s.name) for s in report.services), default=7)
    for service in report.services:
        colour = _STATE_COLOURS.get(service.state, "white")
        health = f" ({service.health})" if service.health else ""
        click.echo(f"  {service.name:<{width}}  " + click.style(service.state, fg=colour) + health)

    click.echo()
    info("Installation completed successfully!")
    click.echo()

    if report.endpoints:
        click.secho("Quick Reference:", fg="green")
        for name, url in report.endpoints.items():
            click.echo(f"  • {name}: {url}")
        click.echo()

    click.secho("Important Notes:", fg="yellow")
    if report.install and report.install.group_added:
        click.echo("  • Log out and back in for Docker group changes to take effect")
    click.echo("  • Configure SWAG and Nextcloud as described in the README")
    click.echo(f"  • Your data is stored in: {report.base_dir}")
    if report.firewall_configured:
        click.echo("  • UFW firewall has been configured and enabled")
    else:
        click.echo("  • UFW was not configured; set up the firewall manually")
    click.echo()


def render_next_steps(steps: list[str]) -> None:
    if not steps:
        return
    click.secho("Next Steps:", fg="blue")
    for i, step in enumerate(steps, start=1):
        click.echo(f"  {i}. {step}")
    click.echo()
