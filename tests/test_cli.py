"""Tests for the SharePilot command line."""
import json
from functools import partial

import pytest
from click.testing import CliRunner

from fakes import EngineFactory, LockedLedger, make_resolver
from sharepilot.automation.runner import ApplyRunner, StatusRunner
from sharepilot.automation.workflow import SUCCESS_INDICATOR, UNITS_INPUT
from sharepilot.cli import SharePilotCLI, console
from sharepilot.cli.main import cli
from sharepilot.history.ledger import HistoryEntry, Ledger
from sharepilot.history.reconciler import HistoryReconciler
from sharepilot.remote.resolver import Resolver

ROUTES = {
    ("GET", "/capital/"): (200, [{"code": "13700", "name": "NABIL BANK LIMITED (13700)"}]),
    ("POST", "/companyShare/applicableIssue/"): (
        200, {"object": [{"companyShareId": 501, "scrip": "ABC", "companyName": "ABC Hydropower"}]}
    ),
    ("GET", "/bank/"): (200, [{"id": 44, "name": "Bank A"}]),
    ("POST", "/applicantForm/active/search/"): (200, {"object": [{"applicantFormId": 7, "scrip": "ABC"}]}),
    ("GET", "/applicantForm/report/detail/7"): (200, {"statusName": "COMPLETE", "meroshareRemark": "Alloted"}),
}


@pytest.fixture
def run(tmp_path, monkeypatch):
    # Wide enough that table cells are never wrapped
    monkeypatch.setattr(console, "width", 200)
    runner = CliRunner()

    def invoke(*args, secret="cli-secret", input=None):
        return runner.invoke(
            cli,
            ["--data-dir", str(tmp_path), *args],
            input=input,
            env={"SECRET_KEY": secret},
        )

    return invoke


def enroll(run, username="user1"):
    return run(
        "enroll", "--fullname", "User One", "--boid", "1301700000000001", "--dp-id", "13700", "-u", username,
        input="s3cr3t\nCRN-001\nmypin\n",
    )


def enroll_without_secret(run):
    return run(
        "enroll", "--fullname", "User One", "--boid", "1", "--dp-id", "13700", "-u", "user1",
        secret="", input="s3cr3t\nCRN-001\nmypin\n",
    )


class TestAccountCommands:
    def test_enroll_stores_ciphertext(self, run, tmp_path):
        result = enroll(run)

        assert result.exit_code == 0, result.output
        records = json.loads((tmp_path / "accounts.json").read_text())
        assert records[0]["username"] == "user1"
        assert records[0]["password"] != "s3cr3t"

    def test_enroll_without_secret_key_fails(self, run, tmp_path):
        result = enroll_without_secret(run)

        assert result.exit_code != 0
        assert "SECRET_KEY" in result.output
        assert not (tmp_path / "accounts.json").exists()

    def test_accounts_lists_usernames(self, run):
        enroll(run, username="user1")

        result = run("accounts")

        assert result.exit_code == 0
        assert "user1" in result.output
        assert "s3cr3t" not in result.output

    def test_remove_by_id(self, run, tmp_path):
        enroll(run)
        account_id = json.loads((tmp_path / "accounts.json").read_text())[0]["id"]

        result = run("remove", account_id, "--yes")

        assert result.exit_code == 0
        assert json.loads((tmp_path / "accounts.json").read_text()) == []

    def test_remove_unknown_id_fails(self, run):
        result = run("remove", "missing", "--yes")

        assert result.exit_code == 1
        assert "Account not found" in result.output


class TestHistoryCommand:
    def test_empty_history(self, run):
        result = run("history")

        assert result.exit_code == 0
        assert "No application history" in result.output


class Automation:
    """Stands in for the browser and the remote API during a CLI run."""

    def __init__(self, **engine_kwargs):
        self.factory = EngineFactory(**engine_kwargs)
        self.requested = []
        self.closed = []

    def engine_factory(self, engine):
        self.requested.append(engine)
        return self.factory

    def make_resolver(self):
        resolver, _ = make_resolver(ROUTES)
        return resolver

    @property
    def engine(self):
        return self.factory.engines[0]


@pytest.fixture
def automation(monkeypatch):
    def install(**engine_kwargs):
        fake = Automation(**engine_kwargs)
        monkeypatch.setattr(SharePilotCLI, "engine_factory", lambda cli, engine: fake.engine_factory(engine))
        monkeypatch.setattr(SharePilotCLI, "make_resolver", lambda cli: fake.make_resolver())
        monkeypatch.setattr(Resolver, "close", lambda resolver: fake.closed.append(resolver))
        def no_sleep(seconds):
            pass

        monkeypatch.setattr("sharepilot.cli.main.ApplyRunner", partial(ApplyRunner, sleep=no_sleep))
        monkeypatch.setattr("sharepilot.cli.main.StatusRunner", partial(StatusRunner, sleep=no_sleep))
        monkeypatch.setattr("sharepilot.cli.main.HistoryReconciler", partial(HistoryReconciler, sleep=no_sleep))
        return fake

    return install


class TestApplyCommand:
    def test_overrides_reach_the_run(self, run, automation, tmp_path):
        fake = automation(texts={SUCCESS_INDICATOR: "Share has been applied successfully."})
        enroll(run)

        result = run("apply", "--script", "abc", "--units", "20", "--engine", "selenium", "--no-headless")

        assert result.exit_code == 0, result.output
        assert fake.requested == ["selenium"]
        assert fake.engine.headless is False
        assert fake.engine.values[UNITS_INPUT] == "20"
        assert fake.engine.stopped
        assert len(fake.closed) == 1
        entries = Ledger(tmp_path / "history.json").load()
        assert [(e.company, e.username, e.units) for e in entries] == [("ABC", "user1", 20)]
        assert "success" in result.output

    def test_defaults_use_playwright_headless(self, run, automation):
        fake = automation(texts={SUCCESS_INDICATOR: "Share has been applied successfully."})
        enroll(run)

        result = run("apply")

        assert result.exit_code == 0, result.output
        assert fake.requested == ["playwright"]
        assert fake.engine.headless is True

    def test_uncertain_submission_suggests_status_check(self, run, automation):
        automation(stuck_submit=True)
        enroll(run)

        result = run("apply")

        assert result.exit_code == 0, result.output
        assert "uncertain" in result.output
        assert "sharepilot check-status" in result.output

    def test_unsaved_history_is_reported(self, run, automation, monkeypatch):
        automation(texts={SUCCESS_INDICATOR: "Share has been applied successfully."})
        monkeypatch.setattr(SharePilotCLI, "ledger", property(lambda cli: LockedLedger(cli.settings.history_path)))
        enroll(run)

        result = run("apply")

        assert result.exit_code == 1
        assert "History was not saved for: user1" in result.output

    def test_requires_secret_key(self, run, automation):
        fake = automation()

        result = run("apply", secret="")

        assert result.exit_code != 0
        assert "SECRET_KEY" in result.output
        assert fake.requested == []


class TestCheckStatusCommand:
    def test_updates_history(self, run, automation, tmp_path):
        fake = automation()
        enroll(run)
        Ledger(tmp_path / "history.json").append_entry(HistoryEntry(
            company="ABC",
            boid="1301700000000001",
            username="user1",
            fullname="User One",
            units=10,
            date="2026-10-19T10:00:00",
        ))

        result = run("check-status", "--engine", "selenium")

        assert result.exit_code == 0, result.output
        assert fake.requested == ["selenium"]
        assert "1 updated" in result.output
        assert len(fake.closed) == 1
        entry = Ledger(tmp_path / "history.json").load()[0]
        assert (entry.status_name, entry.remark) == ("COMPLETE", "Alloted")
