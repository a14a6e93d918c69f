"""Runtime configuration loaded from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

DEFAULT_DATA_DIR = os.path.expanduser("~/.sharepilot")
DEFAULT_API_URL = "https://webbackend.cdsc.com.np/api/meroShare"
DEFAULT_FRONTEND_URL = "https://meroshare.cdsc.com.np"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Process configuration.

    ``secret_key`` seeds the credential vault; everything else tunes the runs.
    Timeouts for the browser are in milliseconds (matching the engines), the
    HTTP timeout and pacing delays are in seconds.
    """
    secret_key: Optional[str] = None
    data_dir: str = DEFAULT_DATA_DIR
    target_script: Optional[str] = None
    applied_units: int = 10
    api_base_url: str = DEFAULT_API_URL
    frontend_url: str = DEFAULT_FRONTEND_URL
    request_timeout: float = 30.0
    ui_timeout_ms: int = 30000
    settle_timeout_ms: int = 5000
    submit_wait_ms: int = 10000
    label_wait_ms: int = 5000
    extended_wait: float = 3.0
    outcome_timeout_ms: int = 5000
    account_pacing: float = 9.0
    status_entry_delay: float = 5.0
    headless: bool = True
    selection: str = "first"
    engine: str = "playwright"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Build settings from environment variables.

        ``env_file`` is loaded first; without one, the nearest ``.env`` from the
        current working directory upwards is used. Variables already set in
        the environment win.
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))
        selection = os.environ.get("SHAREPILOT_SELECTION", "first").strip().lower()
        if selection not in ("first", "single"):
            raise ConfigurationError(f"SHAREPILOT_SELECTION must be 'first' or 'single', got {selection!r}")
        target = os.environ.get("TARGET_SCRIPT")
        return cls(
            secret_key=os.environ.get("SECRET_KEY") or None,
            data_dir=os.path.expanduser(os.environ.get("SHAREPILOT_DATA_DIR", DEFAULT_DATA_DIR)),
            target_script=target.strip() if target and target.strip() else None,
            applied_units=_env_int("APPLIED_KITTA", 10),
            api_base_url=os.environ.get("MEROSHARE_API_URL", DEFAULT_API_URL).rstrip("/"),
            frontend_url=os.environ.get("MEROSHARE_URL", DEFAULT_FRONTEND_URL).rstrip("/"),
            request_timeout=_env_float("SHAREPILOT_REQUEST_TIMEOUT", 30.0),
            ui_timeout_ms=_env_int("SHAREPILOT_UI_TIMEOUT_MS", 30000),
            account_pacing=_env_float("SHAREPILOT_ACCOUNT_PACING", 9.0),
            status_entry_delay=_env_float("SHAREPILOT_STATUS_DELAY", 5.0),
            headless=_env_bool("SHAREPILOT_HEADLESS", True),
            selection=selection,
        )

    def require_secret(self) -> str:
        """Return the vault seed or fail before any record is touched."""
        if not self.secret_key:
            raise ConfigurationError(
                "SECRET_KEY is not set; encrypted account data cannot be read or written"
            )
        return self.secret_key

    def with_overrides(self, **changes) -> "Settings":
        """Copy with the non-None keyword values applied (CLI options)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @property
    def accounts_path(self) -> Path:
        return Path(self.data_dir) / "accounts.json"

    @property
    def history_path(self) -> Path:
        return Path(self.data_dir) / "history.json"
