"""
Browser-driven share application workflow.

``ApplicationWorkflow`` walks one account through login, session-token
extraction, form population and confirmation. Each step either advances
``state`` or raises a WorkflowError subclass, after which ``state`` is FAILED.
Nothing here retries except the final-submit ladder.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, Tuple, Type, Union

from ..core.config import Settings
from ..core.exceptions import (
    AuthenticationError,
    FormError,
    NavigationError,
    ParticipantSelectionError,
    SharePilotError,
    TokenMissingError,
    WorkflowError,
)
from ..core.models import Account
from ..remote.resolver import Resolver, Subject
from .submit import ENABLED_SUBMIT_JS, SUBMIT_SELECTOR, SubmitLadder
from .types import AutomationStatus, SubmissionOutcome, WorkflowState

logger = logging.getLogger(__name__)

PARTICIPANT_CONTROL = ".select2-selection"
PARTICIPANT_SEARCH = ".select2-search__field"
USERNAME_INPUT = "#username"
PASSWORD_INPUT = "#password"
BANK_SELECT = "#selectBank"
ACCOUNT_SELECT = "#accountNumber"
UNITS_INPUT = "#appliedKitta"
CRN_INPUT = "#crnNumber"
DISCLAIMER = "#disclaimer"
PIN_INPUT = "#transactionPIN"
ERROR_INDICATOR = ".alert-danger"
SUCCESS_INDICATOR = ".alert-success"

TOKEN_JS = "() => window.sessionStorage.getItem('Authorization')"

PARTICIPANT_SUGGESTION_JS = (
    "() => Array.from(document.querySelectorAll('.select2-results__option'))"
    ".some(o => !o.classList.contains('select2-results__message') && o.textContent.trim() !== '')"
)

FIELD_SETTLED_JS = (
    "(arg) => { const el = document.querySelector(arg.selector);"
    " return !!el && el.value === arg.value; }"
)

ACCOUNT_OPTIONS_JS = (
    "() => { const s = document.querySelector('#accountNumber');"
    " return !!s && Array.from(s.options).slice(1).some(o => o.value !== ''); }"
)

FIRST_ACCOUNT_OPTION_JS = (
    "() => { const s = document.querySelector('#accountNumber');"
    " if (!s) return null;"
    " const o = Array.from(s.options).slice(1).find(o => o.value !== '');"
    " return o ? o.value : null; }"
)

OUTCOME_JS = (
    "() => !!document.querySelector('.alert-danger') || !!document.querySelector('.alert-success')"
)


class ApplicationWorkflow:
    """State machine over one browser session for one account."""

    def __init__(
        self,
        engine,
        resolver: Resolver,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
        ladder: Optional[SubmitLadder] = None,
    ):
        self.engine = engine
        self.resolver = resolver
        self.settings = settings
        self.state = WorkflowState.START
        self.subject: Optional[Subject] = None
        self.ladder = ladder or SubmitLadder(
            submit_wait_ms=settings.submit_wait_ms,
            label_wait_ms=settings.label_wait_ms,
            extended_wait=settings.extended_wait,
            sleep=sleep,
        )

    # ---- helpers ----

    def _advance(self, state: WorkflowState) -> None:
        logger.debug(f"[workflow] {self.state.value} -> {state.value}")
        self.state = state

    @contextmanager
    def _step(self, error_cls: Type[WorkflowError], what: str) -> Iterator[None]:
        """Wrap engine failures in ``error_cls``; package errors pass through."""
        try:
            yield
        except SharePilotError:
            raise
        except Exception as e:
            raise error_cls(f"{what}: {e}") from e

    def _type_and_settle(self, selector: str, value: str) -> None:
        """Type into a field, then wait until the page reports the value back."""
        self.engine.type(selector, value)
        self.engine.wait_for_function(
            FIELD_SETTLED_JS,
            arg={"selector": selector, "value": value},
            timeout_ms=self.settings.settle_timeout_ms,
        )

    @property
    def _timeout(self) -> int:
        return self.settings.ui_timeout_ms

    # ---- login states ----

    def _open_entry_surface(self) -> None:
        with self._step(NavigationError, "login page did not render"):
            self.engine.goto(self.settings.frontend_url, wait_until="domcontentloaded", timeout_ms=self._timeout)
            self.engine.wait_for(PARTICIPANT_CONTROL, timeout_ms=self._timeout, visible=True)
            self.engine.click(PARTICIPANT_CONTROL)
        self._advance(WorkflowState.AWAITING_PARTICIPANT_SELECTION)

    def _select_participant(self, participant_name: str) -> None:
        with self._step(ParticipantSelectionError, f"could not select DP {participant_name!r}"):
            self.engine.wait_for(PARTICIPANT_SEARCH, timeout_ms=self._timeout, visible=True)
            self.engine.type(PARTICIPANT_SEARCH, participant_name)
            self.engine.wait_for_function(PARTICIPANT_SUGGESTION_JS, timeout_ms=self.settings.settle_timeout_ms)
            self.engine.press("Enter")
        self._advance(WorkflowState.AWAITING_CREDENTIALS)

    def _enter_credentials(self, account: Account) -> None:
        with self._step(AuthenticationError, "could not enter credentials"):
            self._type_and_settle(USERNAME_INPUT, account.username)
            self._type_and_settle(PASSWORD_INPUT, account.password)
        self._advance(WorkflowState.AUTHENTICATING_SUBMIT)

    def _submit_login(self) -> None:
        with self._step(AuthenticationError, "login did not complete"):
            self.engine.click_and_wait_for_navigation(SUBMIT_SELECTOR, wait_until="networkidle", timeout_ms=self._timeout)
        self._advance(WorkflowState.SESSION_ESTABLISHED)

    def _extract_token(self) -> str:
        with self._step(AuthenticationError, "dashboard did not load after login"):
            self.engine.goto(f"{self.settings.frontend_url}/#/asba", wait_until="networkidle", timeout_ms=self._timeout)
            token = self.engine.evaluate(TOKEN_JS)
        if not token:
            raise TokenMissingError("Failed to retrieve authorization token")
        self._advance(WorkflowState.TOKEN_EXTRACTED)
        return token

    # ---- application states ----

    def _resolve_targets(self, token: str, subject_name: Optional[str]) -> Tuple[Subject, Union[int, str]]:
        """Resolve the subject and the destination bank concurrently."""
        def resolve_subject() -> Subject:
            if subject_name:
                return self.resolver.resolve_subject_by_name(token, subject_name)
            return self.resolver.resolve_first_applicable_subject(token)

        with ThreadPoolExecutor(max_workers=2) as pool:
            subject_future = pool.submit(resolve_subject)
            bank_future = pool.submit(self.resolver.resolve_first_destination_account, token)
            subject = subject_future.result()
            bank_id = bank_future.result()
        self.subject = subject
        logger.info(f"Using share {subject.scrip} (id {subject.share_id}), bank id {bank_id}")
        return subject, bank_id

    def _populate_form(self, account: Account, subject: Subject, bank_id: Union[int, str]) -> None:
        self._advance(WorkflowState.FORM_POPULATING)
        with self._step(FormError, "could not populate the application form"):
            self.engine.goto(
                f"{self.settings.frontend_url}/#/asba/apply/{subject.share_id}",
                wait_until="domcontentloaded",
                timeout_ms=self._timeout,
            )
            self.engine.wait_for(BANK_SELECT, timeout_ms=self._timeout)
            self.engine.select_option(BANK_SELECT, str(bank_id))
            self.engine.wait_for(ACCOUNT_SELECT, timeout_ms=self._timeout)
            self.engine.wait_for_function(ACCOUNT_OPTIONS_JS, timeout_ms=self._timeout)
            account_value = self.engine.evaluate(FIRST_ACCOUNT_OPTION_JS)
            if not account_value:
                raise FormError("No destination account option available")
            self.engine.select_option(ACCOUNT_SELECT, account_value)
            self._type_and_settle(UNITS_INPUT, str(self.settings.applied_units))
            self._type_and_settle(CRN_INPUT, account.crn_number)
            self.engine.wait_for(DISCLAIMER, timeout_ms=self._timeout)
            self.engine.click(DISCLAIMER)
            self.engine.wait_for_function(ENABLED_SUBMIT_JS, timeout_ms=self._timeout)
            self.engine.click(SUBMIT_SELECTOR)

    def _await_confirmation(self) -> None:
        with self._step(FormError, "confirmation step did not appear"):
            self.engine.wait_for(PIN_INPUT, timeout_ms=self._timeout)
        self._advance(WorkflowState.AWAITING_CONFIRMATION)

    def _confirm(self, account: Account) -> int:
        with self._step(FormError, "could not enter transaction PIN"):
            self._type_and_settle(PIN_INPUT, account.pin)
        strategy = self.ladder.submit(self.engine)
        self._advance(WorkflowState.SUBMITTED)
        return strategy

    def _read_outcome(self, subject: Subject, strategy: int) -> SubmissionOutcome:
        try:
            self.engine.wait_for_function(OUTCOME_JS, timeout_ms=self.settings.outcome_timeout_ms)
        except Exception:
            logger.debug("[workflow] no outcome indicator appeared")
        error_text = self.engine.text_content(ERROR_INDICATOR)
        success_text = self.engine.text_content(SUCCESS_INDICATOR)
        outcome = SubmissionOutcome(
            status=AutomationStatus.UNCONFIRMED,
            subject=subject,
            strategy=strategy,
            submitted_at=datetime.now(),
        )
        if error_text and error_text.strip():
            outcome.status = AutomationStatus.FAILED
            outcome.message = error_text.strip()
            logger.error(f"Application error: {outcome.message}")
        elif success_text is not None:
            outcome.status = AutomationStatus.SUCCESS
            outcome.message = success_text.strip()
            logger.info(f"Success message: {outcome.message}")
        else:
            outcome.message = "Submitted; the page showed no success or error message"
            logger.warning(outcome.message)
        self._advance(WorkflowState.SUCCEEDED)
        return outcome

    # ---- public API ----

    def authenticate(self, account: Account, participant_name: str) -> str:
        """Log in and return the session token.

        Raises:
            WorkflowError: If any login step fails
        """
        try:
            account.validate()
            self._open_entry_surface()
            self._select_participant(participant_name)
            self._enter_credentials(account)
            self._submit_login()
            return self._extract_token()
        except SharePilotError:
            self._advance(WorkflowState.FAILED)
            raise

    def apply(self, account: Account, participant_name: str, subject_name: Optional[str] = None) -> SubmissionOutcome:
        """Run the full application for one account.

        Args:
            account: Decrypted account
            participant_name: Display name of the account's depository participant
            subject_name: Scrip to apply for; the first applicable issue when None

        Raises:
            SharePilotError: If a step fails. SubmissionAmbiguousError means the
                outcome is unknown and must be verified.
        """
        token = self.authenticate(account, participant_name)
        try:
            subject, bank_id = self._resolve_targets(token, subject_name)
            self._populate_form(account, subject, bank_id)
            self._await_confirmation()
            strategy = self._confirm(account)
            return self._read_outcome(subject, strategy)
        except SharePilotError:
            self._advance(WorkflowState.FAILED)
            raise
