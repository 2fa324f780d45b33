"""Scan commands: run a scan, list targets, check connectivity."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)


def _load(config_path: str, **overrides):
    """Load config or exit with a readable error."""
    from file_inventory.config import ConfigError, load_config

    try:
        return load_config(config_path, **overrides)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e


def _print_summary(report, report_path: Path | None, console: Console | None) -> None:
    from file_inventory.report import summary_rows

    rows = summary_rows(report)
    if console is None:
        for key, value in rows:
            click.echo(f"{key}: {value}")
        if report_path:
            click.echo(f"Report: {report_path}")
        return

    table = Table(title="Scan Summary")
    table.add_column("Item", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in rows:
        table.add_row(key, str(value))
    console.print(table)
    if report_path:
        console.print(f"[green]Report:[/green] {report_path}")
    else:
        console.print("[dim]No matching files or errors; no report written[/dim]")


@click.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option(
    "--concurrency",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Servers scanned in parallel (overrides config; 1 = serial)",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Per-server timeout in seconds, 0 for none (overrides config)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for the report workbook (overrides config)",
)
@click.option("--no-email", is_flag=True, help="Skip the summary and alert mails")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed progress")
def scan(
    config_path: str,
    concurrency: int | None,
    timeout: float | None,
    output_dir: str | None,
    no_email: bool,
    verbose: bool,
) -> None:
    """Scan every target for matching files and publish the report.

    \b
    Examples:
      file-inventory scan inventory.yaml
      file-inventory scan inventory.yaml -j 1 --no-email
      file-inventory scan inventory.yaml --timeout 300 -v
    """
    from file_inventory.cli.logging import configure_cli_logging
    from file_inventory.cli.rich_output import should_use_rich
    from file_inventory.fanout import ssh_dispatch
    from file_inventory.notify import NotificationError, SmtpNotifier
    from file_inventory.pipeline import OrchestrationError, run_scheduled_scan
    from file_inventory.report import ExcelReportPublisher
    from file_inventory.settings import get_smtp_password
    from file_inventory.targets import target_source

    use_rich = should_use_rich()
    console = Console() if use_rich else None
    log_file = configure_cli_logging("scan", verbose=verbose, console=not use_rich)

    config = _load(
        config_path, concurrency=concurrency, timeout=timeout, output_dir=output_dir
    )

    notifier = None
    mail = config.mail
    if mail is not None and not no_email:
        notifier = SmtpNotifier(
            mail.smtp_host,
            mail.smtp_port,
            mail.sender,
            starttls=mail.starttls,
            username=mail.username,
            password=get_smtp_password(),
        )

    if console:
        console.print(f"\n[bold]File Inventory Scan[/bold]  ({config_path})")
        console.print(f"  Roots: {len(config.paths)}  Concurrency: {config.concurrency}")
        console.print(f"  Log: {log_file}")

    try:
        outcome = run_scheduled_scan(
            config.filter_set(),
            target_source(config),
            publisher=ExcelReportPublisher(config.output_dir, config.report_prefix),
            concurrency=config.concurrency,
            timeout=config.timeout,
            dispatch=ssh_dispatch(config.python_command),
            notifier=notifier,
            recipients=mail.recipients if mail else (),
            admin_recipients=mail.admin_recipients if mail else (),
            subject_prefix=mail.subject_prefix if mail else "File inventory",
        )
    except OrchestrationError as e:
        click.echo(f"Scan failed during {e.stage}: {e.cause}", err=True)
        raise SystemExit(2) from e
    except NotificationError as e:
        logger.error("%s", e)
        click.echo(f"Scan completed but the summary mail failed: {e}", err=True)
        raise SystemExit(3) from e

    _print_summary(outcome.report, outcome.report_path, console)


@click.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
def targets(config_path: str) -> None:
    """List the servers a scan with CONFIG would cover."""
    from file_inventory.targets import TargetResolutionError, target_source

    config = _load(config_path)
    try:
        names = target_source(config).enumerate()
    except TargetResolutionError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2) from e

    for name in names:
        click.echo(name)
    if not names:
        click.echo("(no targets)", err=True)


@click.command()
@click.argument("config_path", type=click.Path(dir_okay=False))
@click.option("--connect-timeout", type=int, default=None, help="SSH connect timeout")
def check(config_path: str, connect_timeout: int | None) -> None:
    """Validate CONFIG and test SSH connectivity to every target."""
    from file_inventory.remote.executor import check_ssh_connection
    from file_inventory.settings import get_ssh_connect_timeout
    from file_inventory.targets import TargetResolutionError, target_source

    config = _load(config_path)
    timeout = connect_timeout or get_ssh_connect_timeout()
    try:
        names = target_source(config).enumerate()
    except TargetResolutionError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(2) from e

    console = Console()
    table = Table(title=f"Connectivity ({len(names)} targets)")
    table.add_column("Target", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    failed = 0
    for name in names:
        status = check_ssh_connection(name, timeout=timeout)
        if status["connected"]:
            table.add_row(name, "[green]ok[/green]", "")
        else:
            failed += 1
            detail = status["error"]
            if status["suggestion"]:
                detail += f" ({status['suggestion']})"
            table.add_row(name, "[red]failed[/red]", detail)

    console.print(table)
    if failed:
        raise SystemExit(1)
