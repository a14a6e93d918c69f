"""Unit tests for history reconciliation."""
import pytest

from fakes import FakeResolver
from sharepilot.core.exceptions import NotFoundError, ReconciliationError, RemoteServiceError
from sharepilot.history.ledger import HistoryEntry
from sharepilot.history.reconciler import HistoryReconciler
from sharepilot.remote.resolver import ApplicantForm, ApplicationStatus


def entry(company, username="user1"):
    return HistoryEntry(
        company=company,
        boid="1301700000000001",
        username=username,
        fullname="User One",
        units=10,
        date="2026-10-19T10:00:00",
    )


class TestHistoryReconciler:
    def test_updates_entry_in_place(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC")],
            statuses={7: ApplicationStatus("COMPLETE", "Alloted")},
        )
        entries = [entry("ABC")]
        original = entries[0]

        report = HistoryReconciler(resolver).reconcile("tok", "user1", entries)

        assert len(entries) == 1
        assert entries[0] is original
        assert (original.status_name, original.remark) == ("COMPLETE", "Alloted")
        assert report.updated_count == 1
        assert report.unmatched == []
        assert report.errors == []

    def test_reconcile_is_idempotent(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC")],
            statuses={7: ApplicationStatus("COMPLETE", "Alloted")},
        )
        entries = [entry("ABC")]
        reconciler = HistoryReconciler(resolver)

        reconciler.reconcile("tok", "user1", entries)
        once = [e.to_dict() for e in entries]
        reconciler.reconcile("tok", "user1", entries)

        assert [e.to_dict() for e in entries] == once

    def test_matches_company_case_insensitively(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC")],
            statuses={7: ApplicationStatus("UNVERIFIED", None)},
        )
        entries = [entry("abc")]

        HistoryReconciler(resolver).reconcile("tok", "user1", entries)

        assert entries[0].status_name == "UNVERIFIED"

    def test_unmatched_entries_are_reported(self):
        resolver = FakeResolver(forms=[ApplicantForm(form_id=7, scrip="ABC")], statuses={7: ApplicationStatus("COMPLETE", "")})
        entries = [entry("ABC"), entry("ZZZ")]

        report = HistoryReconciler(resolver).reconcile("tok", "user1", entries)

        assert report.unmatched == ["ZZZ"]
        assert entries[1].status_name is None

    def test_entry_error_does_not_stop_batch(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC"), ApplicantForm(form_id=8, scrip="XYZ")],
            statuses={7: NotFoundError("Applicant form 7 not found"), 8: ApplicationStatus("COMPLETE", "Alloted")},
        )
        entries = [entry("ABC"), entry("XYZ")]

        report = HistoryReconciler(resolver).reconcile("tok", "user1", entries)

        assert report.updated_count == 1
        assert len(report.errors) == 1
        error = report.errors[0]
        assert (error.username, error.company) == ("user1", "ABC")
        assert entries[0].status_name is None
        assert entries[1].status_name == "COMPLETE"

    def test_only_own_entries_are_touched(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC")],
            statuses={7: ApplicationStatus("COMPLETE", "Alloted")},
        )
        entries = [entry("ABC", username="user2"), entry("ABC")]

        HistoryReconciler(resolver).reconcile("tok", "user1", entries)

        assert entries[0].status_name is None
        assert entries[1].status_name == "COMPLETE"

    def test_no_entries_skips_remote_calls(self):
        resolver = FakeResolver()

        report = HistoryReconciler(resolver).reconcile("tok", "user1", [entry("ABC", username="user2")])

        assert report.updated_count == 0
        assert resolver.calls == []

    def test_form_list_failure_raises(self):
        resolver = FakeResolver(forms_error=RemoteServiceError("down", status_code=503))

        with pytest.raises(ReconciliationError) as exc:
            HistoryReconciler(resolver).reconcile("tok", "user1", [entry("ABC")])

        assert exc.value.username == "user1"

    def test_boid_is_refreshed_when_given(self):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC")],
            statuses={7: ApplicationStatus("COMPLETE", "Alloted")},
        )
        entries = [entry("ABC")]

        HistoryReconciler(resolver).reconcile("tok", "user1", entries, boid="1301700000000099")

        assert entries[0].boid == "1301700000000099"

    def test_waits_between_entries(self, sleeps, fake_sleep):
        resolver = FakeResolver(
            forms=[ApplicantForm(form_id=7, scrip="ABC"), ApplicantForm(form_id=8, scrip="XYZ")],
            statuses={7: ApplicationStatus("COMPLETE", ""), 8: ApplicationStatus("COMPLETE", "")},
        )

        HistoryReconciler(resolver, entry_delay=5.0, sleep=fake_sleep).reconcile(
            "tok", "user1", [entry("ABC"), entry("XYZ")]
        )

        assert sleeps == [5.0]
