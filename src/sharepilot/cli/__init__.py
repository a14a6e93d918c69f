"""
SharePilot CLI - shared state and rendering helpers for the command group.
"""
from typing import Callable, List, Optional
import logging

import click
from rich.console import Console
from rich.table import Table

from ..core.accounts import AccountStore
from ..core.config import Settings
from ..core.exceptions import SharePilotError
from ..core.models import StoredAccount
from ..core.vault import init_vault
from ..history.ledger import HistoryEntry, Ledger
from ..remote.resolver import Resolver, SelectionPolicy
from ..automation.types import AccountRunResult, AutomationStatus

logger = logging.getLogger(__name__)

# Create console for rich output
console = Console()

STATUS_STYLES = {
    AutomationStatus.SUCCESS: "green",
    AutomationStatus.UNCONFIRMED: "yellow",
    AutomationStatus.UNCERTAIN: "bold yellow",
    AutomationStatus.FAILED: "red",
    AutomationStatus.SKIPPED: "dim",
}


class SharePilotCLI:
    """State shared by the CLI commands."""

    def __init__(self, data_dir: Optional[str] = None, debug: bool = False):
        self.debug = debug
        try:
            self.settings = Settings.from_env().with_overrides(data_dir=data_dir)
        except SharePilotError as e:
            raise click.ClickException(str(e))
        self._unlocked = False

    def unlock_vault(self) -> None:
        """Derive the vault key from SECRET_KEY; fails before any record is read."""
        if self._unlocked:
            return
        try:
            init_vault(self.settings.require_secret())
        except SharePilotError as e:
            raise click.ClickException(str(e))
        self._unlocked = True

    @property
    def store(self) -> AccountStore:
        return AccountStore(self.settings.accounts_path)

    @property
    def ledger(self) -> Ledger:
        return Ledger(self.settings.history_path)

    def make_resolver(self) -> Resolver:
        return Resolver(
            self.settings.api_base_url,
            timeout=self.settings.request_timeout,
            policy=SelectionPolicy(self.settings.selection),
            referer=self.settings.frontend_url,
        )

    def engine_factory(self, engine: str) -> Callable[[], object]:
        if engine == "playwright":
            from ..automation.playwright_engine import PlaywrightEngine
            return PlaywrightEngine
        from ..automation.selenium_engine import SeleniumEngine, SELENIUM_AVAILABLE
        if not SELENIUM_AVAILABLE:
            raise click.ClickException("Selenium not installed. Install extra: pip install sharepilot[selenium]")
        return SeleniumEngine


def print_account_table(accounts: List[StoredAccount]) -> None:
    """Print stored accounts; secret fields are never shown."""
    if not accounts:
        console.print("[yellow]No accounts found.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("BOID")
    table.add_column("DP")
    table.add_column("Username")

    for account in accounts:
        table.add_row(account.id, account.fullname, account.boid, account.dp_id, account.username)

    console.print(table)


def print_history_table(entries: List[HistoryEntry]) -> None:
    if not entries:
        console.print("[yellow]No application history.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Company")
    table.add_column("Username")
    table.add_column("Name")
    table.add_column("BOID", style="dim")
    table.add_column("Units", justify="right")
    table.add_column("Date", style="dim")
    table.add_column("Status")
    table.add_column("Remark")

    for e in entries:
        table.add_row(
            e.company,
            e.username,
            e.fullname,
            e.boid,
            str(e.units),
            e.date[:19],
            e.status_name or "-",
            e.remark or "",
        )

    console.print(table)


def print_results(results: List[AccountRunResult]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Username")
    table.add_column("Status")
    table.add_column("Message")

    for r in results:
        style = STATUS_STYLES.get(r.status, "")
        message = r.message
        if r.error and r.error not in message:
            message = f"{message}: {r.error}" if message else r.error
        table.add_row(r.username, f"[{style}]{r.status.value}[/]", message)

    console.print(table)
