"""
SharePilot CLI - Command Line Interface for automated share applications.
"""
import sys
import logging
from typing import Optional, Tuple

import click
from rich.logging import RichHandler

from . import SharePilotCLI, console, print_account_table, print_history_table, print_results
from ..core.exceptions import SharePilotError
from ..history.reconciler import HistoryReconciler
from ..automation.runner import ApplyRunner, StatusRunner
from ..automation.types import AutomationStatus

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)]
)
logger = logging.getLogger("sharepilot")

ENGINES = click.Choice(["playwright", "selenium"])


@click.group(invoke_without_command=True)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, dir_okay=True, writable=True),
    default=None,
    help="Directory holding accounts.json and history.json (default: $SHAREPILOT_DATA_DIR or ~/.sharepilot)",
)
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Enable debug output",
    show_default=True
)
@click.pass_context
def cli(ctx: click.Context, data_dir: Optional[str], debug: bool) -> None:
    """SharePilot - apply for share issues across many accounts."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")

    ctx.obj = SharePilotCLI(data_dir=data_dir, debug=debug)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--fullname", prompt="Full name", help="Account holder's full name")
@click.option("--boid", prompt="BOID", help="Beneficial owner id")
@click.option("--dp-id", prompt="DP ID", help="Depository participant code")
@click.option("--username", "-u", prompt="Username", help="Login username")
@click.pass_obj
def enroll(cli: SharePilotCLI, fullname: str, boid: str, dp_id: str, username: str) -> None:
    """Encrypt and store a new account."""
    cli.unlock_vault()
    password = click.prompt("Password", hide_input=True)
    crn_number = click.prompt("CRN number", hide_input=True)
    pin = click.prompt("Transaction PIN", hide_input=True)
    try:
        stored = cli.store.enroll(
            fullname=fullname,
            boid=boid,
            dp_id=dp_id,
            username=username,
            password=password,
            crn_number=crn_number,
            pin=pin,
        )
        console.print(f"[green]✓[/] Encrypted account saved ([bold]{stored.id}[/])")
    except SharePilotError as e:
        console.print(f"[red]✗[/] Failed to save account: {e}")
        sys.exit(1)


@cli.command()
@click.pass_obj
def accounts(cli: SharePilotCLI) -> None:
    """List stored accounts."""
    try:
        print_account_table(cli.store.list_stored())
    except SharePilotError as e:
        console.print(f"[red]✗[/] Failed to list accounts: {e}")
        sys.exit(1)


@cli.command()
@click.argument("account_id")
@click.option("--yes", "-y", is_flag=True, default=False, help="Do not ask for confirmation")
@click.pass_obj
def remove(cli: SharePilotCLI, account_id: str, yes: bool) -> None:
    """Delete a stored account by its id."""
    if not yes and not click.confirm(f"Delete account {account_id}?"):
        return
    try:
        removed = cli.store.remove(account_id)
        console.print(f"[green]✓[/] Deleted account for {removed.username}")
    except SharePilotError as e:
        console.print(f"[red]✗[/] Failed to delete account: {e}")
        sys.exit(1)


@cli.command()
@click.option("--username", "-u", default=None, help="Only show this user's entries")
@click.pass_obj
def history(cli: SharePilotCLI, username: Optional[str]) -> None:
    """Show application history."""
    try:
        entries = cli.ledger.load()
        if username:
            entries = [e for e in entries if e.username == username]
        print_history_table(entries)
    except SharePilotError as e:
        console.print(f"[red]✗[/] Failed to read history: {e}")
        sys.exit(1)


@cli.command()
@click.option("--script", default=None, help="Scrip to apply for (default: $TARGET_SCRIPT, else the first open issue)")
@click.option("--units", type=int, default=None, help="Units to apply for (default: $APPLIED_KITTA or 10)")
@click.option("--account", "account_ids", multiple=True, help="Only run these account ids")
@click.option("--engine", type=ENGINES, default=None, help="Browser engine (default: playwright)")
@click.option("--no-headless", is_flag=True, default=False, help="Run browser with a visible window")
@click.pass_obj
def apply(
    cli: SharePilotCLI,
    script: Optional[str],
    units: Optional[int],
    account_ids: Tuple[str, ...],
    engine: Optional[str],
    no_headless: bool,
) -> None:
    """Apply for a share issue with every stored account."""
    cli.unlock_vault()
    settings = cli.settings.with_overrides(
        target_script=script,
        applied_units=units,
        headless=False if no_headless else None,
        engine=engine,
    )
    factory = cli.engine_factory(settings.engine)
    try:
        with cli.make_resolver() as resolver:
            runner = ApplyRunner(factory, resolver, cli.store, cli.ledger, settings)
            results = runner.run(subject_name=settings.target_script, account_ids=account_ids or None)
    except SharePilotError as e:
        console.print(f"[red]✗[/] Apply run failed: {e}")
        sys.exit(1)
    print_results(results)
    if any(r.status == AutomationStatus.UNCERTAIN for r in results):
        console.print("[yellow]Some submissions could not be confirmed; run 'sharepilot check-status'.[/]")
    unsaved = [r.username for r in results if r.details.get("history_error")]
    if unsaved:
        console.print(f"[red]✗[/] History was not saved for: {', '.join(unsaved)}")
        sys.exit(1)


@cli.command("check-status")
@click.option("--account", "account_ids", multiple=True, help="Only check these account ids")
@click.option("--engine", type=ENGINES, default=None, help="Browser engine (default: playwright)")
@click.option("--no-headless", is_flag=True, default=False, help="Run browser with a visible window")
@click.pass_obj
def check_status(cli: SharePilotCLI, account_ids: Tuple[str, ...], engine: Optional[str], no_headless: bool) -> None:
    """Refresh application status in the history from the remote platform."""
    cli.unlock_vault()
    settings = cli.settings.with_overrides(headless=False if no_headless else None, engine=engine)
    factory = cli.engine_factory(settings.engine)
    try:
        with cli.make_resolver() as resolver:
            reconciler = HistoryReconciler(resolver, entry_delay=settings.status_entry_delay)
            runner = StatusRunner(factory, resolver, cli.store, cli.ledger, reconciler, settings)
            results = runner.run(account_ids=account_ids or None)
    except SharePilotError as e:
        console.print(f"[red]✗[/] Status check failed: {e}")
        sys.exit(1)
    print_results(results)


def main() -> None:
    """Entry point for the SharePilot CLI."""
    try:
        cli()
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.debug("Unhandled error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
