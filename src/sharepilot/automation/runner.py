import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..core.accounts import AccountStore, LoadResult
from ..core.config import Settings
from ..core.exceptions import NavigationError, SharePilotError, SubmissionAmbiguousError
from ..core.models import Account
from ..history.ledger import HistoryEntry, Ledger, LedgerSession
from ..history.reconciler import HistoryReconciler
from ..remote.resolver import Resolver
from .types import AccountRunResult, AutomationStatus
from .workflow import ApplicationWorkflow

logger = logging.getLogger(__name__)

RECORDED_STATUSES = (AutomationStatus.SUCCESS, AutomationStatus.UNCONFIRMED, AutomationStatus.UNCERTAIN)


class _AccountLoop:
    """Shared sequential loop: one fresh browser per account, pacing in between."""

    def __init__(
        self,
        engine_factory: Callable[[], object],
        resolver: Resolver,
        store: AccountStore,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine_factory = engine_factory
        self.resolver = resolver
        self.store = store
        self.settings = settings
        self._sleep = sleep

    def _load(self, account_ids: Optional[Sequence[str]]) -> LoadResult:
        loaded = self.store.load_accounts()
        if account_ids:
            wanted = set(account_ids)
            loaded.accounts = [a for a in loaded.accounts if a.id in wanted]
            loaded.failures = [f for f in loaded.failures if f.account_id in wanted]
        return loaded

    def _skipped(self, loaded: LoadResult) -> List[AccountRunResult]:
        return [
            AccountRunResult(
                account_id=f.account_id,
                username=f.username,
                status=AutomationStatus.SKIPPED,
                message="Could not decrypt account",
                error=f.reason,
            )
            for f in loaded.failures
        ]

    def _with_engine(self, fn: Callable[[object], AccountRunResult]) -> AccountRunResult:
        engine = self.engine_factory()
        try:
            engine.start(headless=self.settings.headless)
        except Exception as e:
            raise NavigationError(f"browser failed to start: {e}") from e
        try:
            return fn(engine)
        finally:
            try:
                engine.stop()
            except Exception:
                logger.debug("[runner] engine stop failed", exc_info=True)

    def _pace(self, index: int, total: int) -> None:
        if index < total - 1 and self.settings.account_pacing:
            logger.debug(f"[runner] pacing {self.settings.account_pacing}s before next account")
            self._sleep(self.settings.account_pacing)


class ApplyRunner(_AccountLoop):
    """Applies for the target share with every stored account, one at a time."""

    def __init__(
        self,
        engine_factory: Callable[[], object],
        resolver: Resolver,
        store: AccountStore,
        ledger: Ledger,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(engine_factory, resolver, store, settings, sleep)
        self.ledger = ledger

    def _apply_one(self, account: Account, subject_name: Optional[str]) -> AccountRunResult:
        participant = self.resolver.resolve_participant_name(account.dp_id)

        def run(engine) -> AccountRunResult:
            workflow = ApplicationWorkflow(engine, self.resolver, self.settings, sleep=self._sleep)
            try:
                outcome = workflow.apply(account, participant, subject_name)
            except SubmissionAmbiguousError as e:
                return AccountRunResult(
                    account_id=account.id,
                    username=account.username,
                    status=AutomationStatus.UNCERTAIN,
                    message="Submission outcome unknown; verify with check-status",
                    error=str(e),
                    details={
                        "state": workflow.state.value,
                        "subject": workflow.subject.scrip if workflow.subject else subject_name,
                    },
                )
            return AccountRunResult(
                account_id=account.id,
                username=account.username,
                status=outcome.status,
                message=outcome.message,
                details={
                    "state": workflow.state.value,
                    "subject": outcome.subject.scrip if outcome.subject else subject_name,
                    "strategy": outcome.strategy,
                },
            )

        return self._with_engine(run)

    def _record(self, account: Account, result: AccountRunResult) -> None:
        company = result.details.get("subject")
        if not company:
            logger.warning(f"No subject known for {account.username}; history not recorded")
            return
        self.ledger.append_entry(HistoryEntry(
            company=company,
            boid=account.boid,
            username=account.username,
            fullname=account.fullname,
            units=self.settings.applied_units,
            date=datetime.now().isoformat(),
        ))

    def run(self, subject_name: Optional[str] = None, account_ids: Optional[Sequence[str]] = None) -> List[AccountRunResult]:
        """Process every account sequentially; a failing account never stops the run."""
        loaded = self._load(account_ids)
        results = self._skipped(loaded)
        total = len(loaded.accounts)
        for index, account in enumerate(loaded.accounts):
            logger.info(f"Starting automation for account #{index + 1} ({account.username})")
            try:
                result = self._apply_one(account, subject_name)
            except SharePilotError as e:
                logger.error(f"Failed for {account.username}: {e}")
                result = AccountRunResult(
                    account_id=account.id,
                    username=account.username,
                    status=AutomationStatus.FAILED,
                    message=type(e).__name__,
                    error=str(e),
                )
            except Exception as e:
                logger.exception(f"Unexpected error for {account.username}")
                result = AccountRunResult(
                    account_id=account.id,
                    username=account.username,
                    status=AutomationStatus.FAILED,
                    message="Unexpected error",
                    error=str(e),
                )
            if result.status in RECORDED_STATUSES:
                try:
                    self._record(account, result)
                except SharePilotError as e:
                    logger.error(f"Failed to save history for {account.username}: {e}")
                    result.details["history_error"] = str(e)
                    result.message = f"{result.message} (history not saved)".strip()
                    result.error = "; ".join(filter(None, [result.error, f"History not saved: {e}"]))
            results.append(result)
            self._pace(index, total)
        logger.info("All accounts processed.")
        return results


class StatusRunner(_AccountLoop):
    """Logs in with each account that has history and refreshes its status."""

    def __init__(
        self,
        engine_factory: Callable[[], object],
        resolver: Resolver,
        store: AccountStore,
        ledger: Ledger,
        reconciler: HistoryReconciler,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(engine_factory, resolver, store, settings, sleep)
        self.ledger = ledger
        self.reconciler = reconciler

    def _check_one(self, account: Account, snapshot: LedgerSession) -> AccountRunResult:
        participant = self.resolver.resolve_participant_name(account.dp_id)

        def run(engine) -> AccountRunResult:
            workflow = ApplicationWorkflow(engine, self.resolver, self.settings, sleep=self._sleep)
            token = workflow.authenticate(account, participant)
            report = self.reconciler.reconcile(token, account.username, snapshot.entries, boid=account.boid)
            status = AutomationStatus.FAILED if report.errors else AutomationStatus.SUCCESS
            return AccountRunResult(
                account_id=account.id,
                username=account.username,
                status=status,
                message=f"{report.updated_count} updated, {len(report.unmatched)} unmatched, {len(report.errors)} errors",
                error="; ".join(str(e) for e in report.errors) or None,
                details={"updated": report.updated_count, "unmatched": report.unmatched},
            )

        return self._with_engine(run)

    def run(self, account_ids: Optional[Sequence[str]] = None) -> List[AccountRunResult]:
        """Reconcile history for every account; the ledger is loaded and saved once.

        Raises:
            LedgerError: If the ledger cannot be loaded or written
        """
        loaded = self._load(account_ids)
        results = self._skipped(loaded)
        with self.ledger.session() as snapshot:
            pending = [a for a in loaded.accounts if snapshot.for_user(a.username)]
            for account in loaded.accounts:
                if account not in pending:
                    results.append(AccountRunResult(
                        account_id=account.id,
                        username=account.username,
                        status=AutomationStatus.SKIPPED,
                        message="No history entries",
                    ))
            for index, account in enumerate(pending):
                logger.info(f"Checking status for account #{index + 1} ({account.username})")
                try:
                    result = self._check_one(account, snapshot)
                except SharePilotError as e:
                    logger.error(f"Status check failed for {account.username}: {e}")
                    result = AccountRunResult(
                        account_id=account.id,
                        username=account.username,
                        status=AutomationStatus.FAILED,
                        message=type(e).__name__,
                        error=str(e),
                    )
                except Exception as e:
                    logger.exception(f"Unexpected error for {account.username}")
                    result = AccountRunResult(
                        account_id=account.id,
                        username=account.username,
                        status=AutomationStatus.FAILED,
                        message="Unexpected error",
                        error=str(e),
                    )
                results.append(result)
                self._pace(index, len(pending))
        logger.info("All accounts processed.")
        return results
