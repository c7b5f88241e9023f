"""
Click-based CLI for provisionkit.

IMPORTANT: This module only ORCHESTRATES. It never reasons or makes decisions.
- Loads settings
- Builds the plan / loads the receipt
- Asks for confirmation
- Formats output and picks the exit code
"""

import sys
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.prompt import Confirm

from provisionkit import __version__
from provisionkit.actions.errors import ProvisionError
from provisionkit.config import ConfigManager
from provisionkit.connector.host import HostConnector, LocalHost
from provisionkit.logging_utils import configure_logging
from provisionkit.model.settings import ConflictPolicy, InitSystem
from provisionkit.plan import FailedRevertsError, InstallPlan
from provisionkit.receipt import Receipt, ReceiptError, RevertFailedError
from provisionkit.report import PlanReporter

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="provisionkit")
@click.option("--config", "-c", type=click.Path(), help="Path to config directory")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging, including every command run")
@click.option("--log-file", type=click.Path(), help="Also write a debug log to this file")
@click.pass_context
def main(ctx: click.Context, config: str | None, verbose: bool, log_file: str | None) -> None:
    """provisionkit: install a distribution and register its daemon, revertibly."""
    configure_logging(verbose, log_file)
    ctx.ensure_object(dict)
    ctx.obj["config_mgr"] = ConfigManager(Path(config) if config else None)
    ctx.obj.setdefault("host", LocalHost())


def _host(ctx: click.Context) -> HostConnector:
    return ctx.obj["host"]


def _fail(reporter: PlanReporter, error: BaseException) -> None:
    reporter.report_error(error)
    sys.exit(1)


def plan_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by `plan` and `install`."""
    func = click.option(
        "--explain", is_flag=True, help="Show the commands and paths behind each step"
    )(func)
    func = click.option(
        "--on-conflict",
        type=click.Choice([p.value for p in ConflictPolicy]),
        default=None,
        help="What to do when a destination already exists (default: fail)",
    )(func)
    func = click.option(
        "--start-daemon/--no-start-daemon", default=None, help="Start the daemon once registered"
    )(func)
    func = click.option(
        "--init",
        "init",
        type=click.Choice([i.value for i in InitSystem]),
        default=None,
        help="Service supervisor to register the daemon with",
    )(func)
    return func


@main.command()
@plan_options
@click.pass_context
def plan(
    ctx: click.Context,
    init: str | None,
    start_daemon: bool | None,
    on_conflict: str | None,
    explain: bool,
) -> None:
    """Show what `install` would do, without changing anything."""
    reporter = PlanReporter(console)
    try:
        settings = ctx.obj["config_mgr"].load_settings(
            init=init, start_daemon=start_daemon, on_conflict=on_conflict, explain=explain or None
        )
        install_plan = InstallPlan.new(settings, _host(ctx))
    except ProvisionError as e:
        _fail(reporter, e)
        return

    reporter.report_plan(install_plan)


@main.command()
@plan_options
@click.option("--no-confirm", is_flag=True, help="Do not ask before changing the host")
@click.option("--receipt", "receipt_path", type=click.Path(), help="Where to write the receipt")
@click.pass_context
def install(
    ctx: click.Context,
    init: str | None,
    start_daemon: bool | None,
    on_conflict: str | None,
    explain: bool,
    no_confirm: bool,
    receipt_path: str | None,
) -> None:
    """Install the distribution and register its daemon.

    Any failure rolls back the steps that already ran. On success a
    receipt is written so `provisionkit revert` can undo the install later.
    """
    reporter = PlanReporter(console)
    host = _host(ctx)
    try:
        settings = ctx.obj["config_mgr"].load_settings(
            init=init, start_daemon=start_daemon, on_conflict=on_conflict, explain=explain or None
        )
        install_plan = InstallPlan.new(settings, host, confirm=None if no_confirm else Confirm.ask)
    except ProvisionError as e:
        _fail(reporter, e)
        return

    path = receipt_path or settings.layout.receipt_path
    reporter.report_plan(install_plan)
    if not no_confirm and not Confirm.ask("Proceed with the install?"):
        console.print("[dim]Aborted, nothing was changed.[/]")
        sys.exit(0)

    try:
        receipt = install_plan.install(host)
    except FailedRevertsError as e:
        reporter.report_outcome(install_plan)
        reporter.report_error(e)
        if len(e.receipt):
            try:
                e.receipt.write(path)
            except ProvisionError as write_error:
                _fail(reporter, write_error)
            console.print(f"[yellow]Partial receipt written to {path}. Retry with `provisionkit revert {path}`.[/]")
        sys.exit(1)
    except ProvisionError as e:
        reporter.report_outcome(install_plan)
        _fail(reporter, e)
        return

    reporter.report_outcome(install_plan)
    try:
        receipt.write(path)
    except ProvisionError as e:
        _fail(reporter, e)
    console.print(f"[bold green]Installed.[/] Receipt: {path}")


@main.command()
@click.argument("receipt_path", required=False, type=click.Path())
@click.option("--no-confirm", is_flag=True, help="Do not ask before changing the host")
@click.option("--explain", is_flag=True, help="Show the commands and paths behind each step")
@click.pass_context
def revert(ctx: click.Context, receipt_path: str | None, no_confirm: bool, explain: bool) -> None:
    """Undo an install recorded in RECEIPT_PATH.

    Defaults to the receipt under the configured prefix. The receipt is
    removed before the actions are reverted, so a prefix holding it can
    be removed too; it is rewritten with whatever is left if the revert
    fails.
    """
    reporter = PlanReporter(console)
    try:
        path = receipt_path or ctx.obj["config_mgr"].load_settings().layout.receipt_path
        receipt = Receipt.load(path)
    except ProvisionError as e:
        _fail(reporter, e)
        return

    reporter.report_revert_plan(receipt, explain or None)
    if not no_confirm and not Confirm.ask("Proceed with the revert?"):
        console.print("[dim]Aborted, nothing was changed.[/]")
        sys.exit(0)

    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        _fail(reporter, ReceiptError(f"Could not remove receipt {path}: {e}"))
        return

    try:
        receipt.revert(_host(ctx))
    except RevertFailedError as e:
        reporter.report_error(e)
        try:
            e.remaining.write(path)
        except ProvisionError as write_error:
            _fail(reporter, write_error)
        console.print(f"[yellow]{len(e.remaining)} action(s) remain in {path}.[/]")
        sys.exit(1)
    except BaseException:
        receipt.remaining().write(path)
        raise

    console.print("[bold green]Reverted.[/]")


if __name__ == "__main__":
    main()
