"""SharePilot core - vault, account records and configuration.

This module provides the credential vault that keeps secret account fields
encrypted at rest, the account models and store, and the runtime settings.
"""

from .exceptions import (
    SharePilotError,
    ConfigurationError,
    VaultError,
    DecryptionError,
    StoreError,
    AccountNotFoundError,
)
from .vault import Vault, init_vault, get_vault
from .models import Account, StoredAccount
from .accounts import AccountStore, AccountLoadFailure, LoadResult
from .config import Settings

__all__ = [
    'SharePilotError',
    'ConfigurationError',
    'VaultError',
    'DecryptionError',
    'StoreError',
    'AccountNotFoundError',
    'Vault',
    'init_vault',
    'get_vault',
    'Account',
    'StoredAccount',
    'AccountStore',
    'AccountLoadFailure',
    'LoadResult',
    'Settings',
]
