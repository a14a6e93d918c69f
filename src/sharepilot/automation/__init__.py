"""Automation layer for share applications via the web.

This package provides the engine abstraction (Playwright/Selenium), the
application workflow state machine with its final-submit ladder, and the
runners that drive it over every stored account.
"""

from .types import AccountRunResult, AutomationStatus, SubmissionOutcome, WorkflowState
from .engine import AutomationEngine
from .submit import SubmitLadder
from .workflow import ApplicationWorkflow
from .runner import ApplyRunner, StatusRunner

__all__ = [
    'AccountRunResult',
    'ApplicationWorkflow',
    'ApplyRunner',
    'AutomationEngine',
    'AutomationStatus',
    'StatusRunner',
    'SubmissionOutcome',
    'SubmitLadder',
    'WorkflowState',
]
