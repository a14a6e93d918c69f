from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime


class AutomationStatus(str, Enum):
    SUCCESS = "success"
    # Submitted, but the page showed neither a success nor an error indicator.
    UNCONFIRMED = "unconfirmed"
    # The final-submit ladder was exhausted; the remote may have registered it.
    UNCERTAIN = "uncertain"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowState(str, Enum):
    START = "start"
    AWAITING_PARTICIPANT_SELECTION = "awaiting_participant_selection"
    AWAITING_CREDENTIALS = "awaiting_credentials"
    AUTHENTICATING_SUBMIT = "authenticating_submit"
    SESSION_ESTABLISHED = "session_established"
    TOKEN_EXTRACTED = "token_extracted"
    FORM_POPULATING = "form_populating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUBMITTED = "submitted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SubmissionOutcome:
    """What the page reported after the final submit."""
    status: AutomationStatus
    message: str = ""
    subject: Optional[Any] = None
    strategy: Optional[int] = None
    submitted_at: Optional[datetime] = None


@dataclass
class AccountRunResult:
    account_id: str
    username: str
    status: AutomationStatus
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
