import json
import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from filelock import FileLock, Timeout

from .exceptions import AccountNotFoundError, DecryptionError, StoreError
from .models import Account, StoredAccount
from .vault import Vault, get_vault

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 10


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` via a temp file in the same directory and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


@dataclass
class AccountLoadFailure:
    """A stored record that could not be decrypted."""
    account_id: str
    username: str
    reason: str


@dataclass
class LoadResult:
    accounts: List[Account] = field(default_factory=list)
    failures: List[AccountLoadFailure] = field(default_factory=list)


class AccountStore:
    """Encrypted account store backed by a JSON file.

    Every read-modify-write cycle holds an exclusive file lock so that the
    administration commands and a running automation driver, which are
    separate processes, cannot lose each other's updates.
    """

    def __init__(self, path: Union[str, Path], vault: Optional[Vault] = None, lock_timeout: float = LOCK_TIMEOUT):
        """Initialize the store.

        Args:
            path: Location of ``accounts.json``
            vault: Vault to use; defaults to the process-wide vault
            lock_timeout: Seconds to wait for the store lock
        """
        self.path = Path(path)
        self._vault = vault
        self._lock = FileLock(str(self.path) + ".lock", timeout=lock_timeout)

    @property
    def vault(self) -> Vault:
        return self._vault or get_vault()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._lock:
                yield
        except Timeout as e:
            raise StoreError(f"Account store is locked by another process: {self.path}") from e

    def _read_raw(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read account store {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"Account store {self.path} must contain a JSON list")
        return data

    def _write_raw(self, records: List[Dict[str, Any]]) -> None:
        try:
            write_json_atomic(self.path, records)
        except OSError as e:
            raise StoreError(f"Failed to write account store {self.path}: {e}") from e

    def _load_records(self) -> List[StoredAccount]:
        """Read all records, assigning ids to legacy records. Caller holds the lock."""
        raw = self._read_raw()
        changed = False
        for record in raw:
            if not record.get("id"):
                record["id"] = uuid.uuid4().hex
                changed = True
        if changed:
            logger.info("Assigned ids to legacy account records")
            self._write_raw(raw)
        return [StoredAccount.from_dict(r) for r in raw]

    def enroll(
        self,
        fullname: str,
        boid: str,
        dp_id: str,
        username: str,
        password: str,
        crn_number: str,
        pin: str,
    ) -> StoredAccount:
        """Encrypt and persist a new account.

        Returns:
            StoredAccount: The persisted (ciphertext) record with its new id

        Raises:
            ConfigurationError: If a required field is empty
            StoreError: If the store cannot be written
        """
        account = Account(
            id=uuid.uuid4().hex,
            fullname=fullname,
            boid=boid,
            dp_id=str(dp_id),
            username=username,
            password=password,
            crn_number=crn_number,
            pin=pin,
        )
        account.validate()
        stored = account.seal(self.vault)
        with self._locked():
            records = self._load_records()
            records.append(stored)
            self._write_raw([r.to_dict() for r in records])
        logger.info(f"Enrolled account {stored.id} ({username})")
        return stored

    def list_stored(self) -> List[StoredAccount]:
        """List records exactly as stored (secrets remain ciphertext)."""
        with self._locked():
            return self._load_records()

    def load_accounts(self) -> LoadResult:
        """Decrypt every stored account.

        A record that fails to decrypt is reported in ``failures`` with its id
        and username; the remaining records still load.
        """
        result = LoadResult()
        vault = self.vault
        for stored in self.list_stored():
            try:
                result.accounts.append(stored.unseal(vault))
            except DecryptionError as e:
                logger.error(f"Cannot decrypt account {stored.id} ({stored.username}): {e}")
                result.failures.append(AccountLoadFailure(stored.id, stored.username, str(e)))
        return result

    def get(self, account_id: str) -> Account:
        """Get a decrypted account by id."""
        for stored in self.list_stored():
            if stored.id == account_id:
                return stored.unseal(self.vault)
        raise AccountNotFoundError(account_id)

    def remove(self, account_id: str) -> StoredAccount:
        """Delete an account by its stable id."""
        with self._locked():
            records = self._load_records()
            remaining = [r for r in records if r.id != account_id]
            if len(remaining) == len(records):
                raise AccountNotFoundError(account_id)
            removed = next(r for r in records if r.id == account_id)
            self._write_raw([r.to_dict() for r in remaining])
        logger.info(f"Removed account {account_id} ({removed.username})")
        return removed
