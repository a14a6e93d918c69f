"""Exception hierarchy for SharePilot.

Every error raised on purpose by the package derives from ``SharePilotError`` so
the run drivers and the CLI can catch one type at their boundary.
"""
from typing import Optional


class SharePilotError(Exception):
    """Base exception for all SharePilot errors."""
    pass


class ConfigurationError(SharePilotError):
    """Missing or invalid configuration (vault seed, required account field)."""
    pass


# ---- Vault and stores ----

class VaultError(SharePilotError):
    """Base exception for vault-related errors."""
    pass


class DecryptionError(VaultError):
    """Raised when an encrypted field is malformed or does not authenticate."""
    pass


class StoreError(SharePilotError):
    """Raised when the account store cannot be read or written."""
    pass


class AccountNotFoundError(StoreError):
    """Raised when no stored account carries the requested id."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class LedgerError(SharePilotError):
    """Raised when the history ledger cannot be loaded or written."""
    pass


# ---- Remote resolver ----

class ResolverError(SharePilotError):
    """Base exception for remote lookups."""
    pass


class RemoteServiceError(ResolverError):
    """Transport failure or unexpected HTTP status from the remote API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(ResolverError):
    """A lookup by identifier found nothing."""
    pass


class NoResultsError(ResolverError):
    """A search returned an empty result set."""
    pass


class NoMatchError(ResolverError):
    """A search returned results but none matched the requested name."""
    pass


class AmbiguousSelectionError(ResolverError):
    """More than one candidate remained under the ``single`` selection policy."""
    pass


# ---- Workflow ----

class WorkflowError(SharePilotError):
    """Base exception for the browser-driven application workflow."""
    pass


class NavigationError(WorkflowError):
    """An expected page surface did not render within the wait window."""
    pass


class ParticipantSelectionError(WorkflowError):
    """The depository participant could not be selected on the login page."""
    pass


class AuthenticationError(WorkflowError):
    """Login did not complete."""
    pass


class TokenMissingError(WorkflowError):
    """No session token was found in session storage after login."""
    pass


class FormError(WorkflowError):
    """The application form could not be populated or submitted."""
    pass


class SubmissionAmbiguousError(WorkflowError):
    """Every final-submit strategy failed.

    The remote side may or may not have registered the application, so the
    outcome must be verified independently (see the status-check run).
    """

    def __init__(self, message: str, attempts: Optional[list] = None):
        self.attempts = attempts or []
        super().__init__(message)


# ---- Reconciliation ----

class ReconciliationError(SharePilotError):
    """A single ledger entry could not be reconciled with the remote state."""

    def __init__(self, username: str, company: str, reason: str):
        self.username = username
        self.company = company
        self.reason = reason
        super().__init__(f"{username}/{company}: {reason}")
