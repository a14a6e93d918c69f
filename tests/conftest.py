"""Shared fixtures for the SharePilot test suite."""
import pytest

from sharepilot.core.accounts import AccountStore
from sharepilot.core.config import Settings
from sharepilot.core.vault import Vault, reset_vault
from sharepilot.history.ledger import Ledger


@pytest.fixture(autouse=True)
def clean_vault():
    """Every test starts without a process-wide vault."""
    reset_vault()
    yield
    reset_vault()


@pytest.fixture
def vault():
    return Vault.from_seed("test-secret-key")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key="test-secret-key",
        data_dir=str(tmp_path),
        frontend_url="https://meroshare.test",
        api_base_url="https://api.test/api/meroShare",
    )


@pytest.fixture
def store(settings, vault):
    return AccountStore(settings.accounts_path, vault=vault)


@pytest.fixture
def ledger(settings):
    return Ledger(settings.history_path)


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append

