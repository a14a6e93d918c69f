"""Merge remote application status into the local history ledger."""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..core.exceptions import ReconciliationError, SharePilotError
from ..remote.resolver import Resolver
from .ledger import HistoryEntry

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    username: str
    updated_count: int = 0
    unmatched: List[str] = field(default_factory=list)
    errors: List[ReconciliationError] = field(default_factory=list)


class HistoryReconciler:
    """Updates a user's ledger entries in place from the remote form list."""

    def __init__(
        self,
        resolver: Resolver,
        entry_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.resolver = resolver
        self.entry_delay = entry_delay
        self._sleep = sleep

    def reconcile(
        self,
        token: str,
        username: str,
        entries: List[HistoryEntry],
        boid: Optional[str] = None,
    ) -> ReconciliationReport:
        """Reconcile every entry in ``entries`` belonging to ``username``.

        Entries are modified in place; nothing is ever appended. A failure on
        one entry is recorded in the report and the batch continues.

        Raises:
            ReconciliationError: If the remote form list itself cannot be fetched
        """
        report = ReconciliationReport(username=username)
        mine = [e for e in entries if e.username == username]
        if not mine:
            logger.info(f"No history entries for {username}")
            return report

        try:
            forms = self.resolver.list_applicant_forms(token)
        except SharePilotError as e:
            raise ReconciliationError(username, "*", f"could not list applicant forms: {e}") from e
        by_scrip = {}
        for form in forms:
            by_scrip.setdefault(form.scrip.upper(), form)

        for i, entry in enumerate(mine):
            if i and self.entry_delay:
                self._sleep(self.entry_delay)
            company = entry.company.upper()
            logger.info(f"[{i + 1}/{len(mine)}] Checking {company} for {username}")
            form = by_scrip.get(company)
            if form is None:
                logger.warning(f"No matching script found for: {company}")
                report.unmatched.append(entry.company)
                continue
            try:
                status = self.resolver.resolve_application_status(token, form.form_id)
            except SharePilotError as e:
                logger.error(f"Error fetching form details for {company}: {e}")
                report.errors.append(ReconciliationError(username, entry.company, str(e)))
                continue
            entry.status_name = status.status_name
            entry.remark = status.remark
            if boid:
                entry.boid = boid
            report.updated_count += 1
            logger.info(f"{company}: {status.status_name or 'N/A'} ({status.remark or 'no remark'})")
        return report
