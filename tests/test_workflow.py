"""Unit tests for the application workflow, driven through FakeEngine."""
import pytest

from fakes import FakeEngine, FakeResolver
from sharepilot.automation.types import AutomationStatus, WorkflowState
from sharepilot.automation.workflow import (
    ApplicationWorkflow,
    CRN_INPUT,
    ERROR_INDICATOR,
    FIRST_ACCOUNT_OPTION_JS,
    PARTICIPANT_SEARCH,
    PARTICIPANT_SUGGESTION_JS,
    PIN_INPUT,
    SUCCESS_INDICATOR,
    UNITS_INPUT,
    USERNAME_INPUT,
)
from sharepilot.automation.submit import SUBMIT_SELECTOR
from sharepilot.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    FormError,
    NavigationError,
    NoMatchError,
    ParticipantSelectionError,
    SubmissionAmbiguousError,
    TokenMissingError,
)
from sharepilot.core.models import Account

PARTICIPANT = "NABIL BANK LIMITED (13700)"


@pytest.fixture
def account():
    return Account(
        id="a1",
        fullname="User One",
        boid="1301700000000001",
        dp_id="13700",
        username="user1",
        password="s3cr3t",
        crn_number="CRN-001",
        pin="mypin",
    )


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def make_workflow(resolver, settings, fake_sleep):
    def make(engine):
        return ApplicationWorkflow(engine, resolver, settings, sleep=fake_sleep)
    return make


class TestAuthenticate:
    def test_returns_session_token(self, make_workflow, account):
        engine = FakeEngine(token="tok-abc")
        workflow = make_workflow(engine)

        assert workflow.authenticate(account, PARTICIPANT) == "tok-abc"
        assert workflow.state == WorkflowState.TOKEN_EXTRACTED
        assert engine.values[PARTICIPANT_SEARCH] == PARTICIPANT
        assert engine.values[USERNAME_INPUT] == "user1"

    def test_login_steps_run_in_order(self, make_workflow, account):
        engine = FakeEngine()

        make_workflow(engine).authenticate(account, PARTICIPANT)

        order = [engine.calls.index(c) for c in [
            ("type", PARTICIPANT_SEARCH),
            ("press", "Enter"),
            ("type", USERNAME_INPUT),
            ("click_and_wait", SUBMIT_SELECTOR),
        ]]
        assert order == sorted(order)

    def test_missing_token_raises(self, make_workflow, account, resolver):
        workflow = make_workflow(FakeEngine(token=None))

        with pytest.raises(TokenMissingError):
            workflow.apply(account, PARTICIPANT)

        assert workflow.state == WorkflowState.FAILED
        assert resolver.calls == []

    def test_entry_page_failure(self, make_workflow, account, settings):
        engine = FakeEngine(fail={settings.frontend_url: TimeoutError("no page")})
        workflow = make_workflow(engine)

        with pytest.raises(NavigationError):
            workflow.authenticate(account, PARTICIPANT)

        assert workflow.state == WorkflowState.FAILED

    def test_participant_not_offered(self, make_workflow, account):
        engine = FakeEngine(fail={PARTICIPANT_SUGGESTION_JS: TimeoutError("no options")})

        with pytest.raises(ParticipantSelectionError):
            make_workflow(engine).authenticate(account, PARTICIPANT)

    def test_login_navigation_failure(self, make_workflow, account):
        engine = FakeEngine(fail={"navigation": TimeoutError("stuck on login")})

        with pytest.raises(AuthenticationError):
            make_workflow(engine).authenticate(account, PARTICIPANT)

    def test_incomplete_account_fails_before_browsing(self, make_workflow, account):
        account.pin = ""
        engine = FakeEngine()

        with pytest.raises(ConfigurationError, match="pin"):
            make_workflow(engine).authenticate(account, PARTICIPANT)

        assert engine.calls == []


class TestApply:
    def test_success_indicator(self, make_workflow, account, settings):
        engine = FakeEngine(texts={SUCCESS_INDICATOR: " Share has been applied successfully. "})
        workflow = make_workflow(engine)

        outcome = workflow.apply(account, PARTICIPANT)

        assert outcome.status == AutomationStatus.SUCCESS
        assert outcome.message == "Share has been applied successfully."
        assert outcome.subject.scrip == "ABC"
        assert outcome.strategy == 1
        assert workflow.state == WorkflowState.SUCCEEDED
        assert engine.values[UNITS_INPUT] == str(settings.applied_units)
        assert engine.values[CRN_INPUT] == "CRN-001"
        assert engine.values[PIN_INPUT] == "mypin"
        assert ("goto", f"{settings.frontend_url}/#/asba/apply/501") in engine.calls

    def test_error_indicator(self, make_workflow, account):
        engine = FakeEngine(texts={ERROR_INDICATOR: "Invalid transaction PIN", SUCCESS_INDICATOR: None})

        outcome = make_workflow(engine).apply(account, PARTICIPANT)

        assert outcome.status == AutomationStatus.FAILED
        assert outcome.message == "Invalid transaction PIN"

    def test_no_indicator_is_unconfirmed(self, make_workflow, account):
        outcome = make_workflow(FakeEngine()).apply(account, PARTICIPANT)

        assert outcome.status == AutomationStatus.UNCONFIRMED

    def test_named_subject(self, make_workflow, account, resolver):
        outcome = make_workflow(FakeEngine()).apply(account, PARTICIPANT, subject_name="abc")

        assert outcome.subject.share_id == 501
        assert ("subject_by_name", "abc") in resolver.calls

    def test_unknown_subject_fails(self, make_workflow, account):
        workflow = make_workflow(FakeEngine())

        with pytest.raises(NoMatchError):
            workflow.apply(account, PARTICIPANT, subject_name="QQQ")

        assert workflow.state == WorkflowState.FAILED

    def test_no_destination_account_option(self, make_workflow, account):
        engine = FakeEngine(evaluations={FIRST_ACCOUNT_OPTION_JS: None})

        with pytest.raises(FormError):
            make_workflow(engine).apply(account, PARTICIPANT)

    def test_exhausted_submit_ladder_is_ambiguous(self, make_workflow, account, settings, sleeps):
        engine = FakeEngine(stuck_submit=True)
        workflow = make_workflow(engine)

        with pytest.raises(SubmissionAmbiguousError):
            workflow.apply(account, PARTICIPANT)

        assert workflow.state == WorkflowState.FAILED
        assert workflow.subject.scrip == "ABC"
        assert sleeps == [settings.extended_wait]
