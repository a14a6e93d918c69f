"""Application history: the persisted ledger and its reconciliation with remote status."""

from .ledger import HistoryEntry, Ledger, LedgerSession
from .reconciler import HistoryReconciler, ReconciliationReport

__all__ = [
    'HistoryEntry',
    'Ledger',
    'LedgerSession',
    'HistoryReconciler',
    'ReconciliationReport',
]
