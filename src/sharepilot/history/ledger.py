import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from filelock import FileLock, Timeout

from ..core.accounts import LOCK_TIMEOUT, write_json_atomic
from ..core.exceptions import LedgerError

logger = logging.getLogger(__name__)

# Negative: block until the lock is released.
APPEND_LOCK_TIMEOUT = -1


@dataclass
class HistoryEntry:
    """One submitted application. ``status_name`` and ``remark`` arrive later."""
    company: str
    boid: str
    username: str
    fullname: str
    units: int
    date: str
    status_name: Optional[str] = None
    remark: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.username, self.company.upper())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'company': self.company,
            'boid': self.boid,
            'username': self.username,
            'fullname': self.fullname,
            'units': self.units,
            'date': self.date,
        }
        if self.status_name is not None:
            data['statusName'] = self.status_name
        if self.remark is not None:
            data['meroshareRemark'] = self.remark
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryEntry':
        return cls(
            company=data.get('company', ''),
            boid=str(data.get('boid', '')),
            username=data.get('username', ''),
            fullname=data.get('fullname', ''),
            units=int(data.get('units') or 0),
            date=data.get('date', ''),
            status_name=data.get('statusName'),
            remark=data.get('meroshareRemark'),
        )


@dataclass
class LedgerSession:
    """In-memory ledger snapshot held under the ledger lock."""
    entries: List[HistoryEntry] = field(default_factory=list)

    def for_user(self, username: str) -> List[HistoryEntry]:
        return [e for e in self.entries if e.username == username]

    def find(self, username: str, company: str) -> Optional[HistoryEntry]:
        key = (username, company.upper())
        return next((e for e in self.entries if e.key == key), None)

    def upsert(self, entry: HistoryEntry) -> HistoryEntry:
        """Add ``entry`` unless its (username, company) is already present.

        An existing entry takes the new submission fields; status fields are
        kept until the next reconciliation.
        """
        existing = self.find(entry.username, entry.company)
        if existing is None:
            self.entries.append(entry)
            return entry
        logger.warning(f"History already has {entry.company} for {entry.username}; updating in place")
        existing.boid = entry.boid
        existing.fullname = entry.fullname
        existing.units = entry.units
        existing.date = entry.date
        return existing


class Ledger:
    """Application history persisted as a JSON list.

    Reads and writes hold an exclusive file lock; writes replace the file
    atomically. Use :meth:`session` to load once and flush once.
    """

    def __init__(
        self,
        path: Union[str, Path],
        lock_timeout: float = LOCK_TIMEOUT,
        append_timeout: float = APPEND_LOCK_TIMEOUT,
    ):
        """Initialize the ledger.

        Args:
            path: Location of ``history.json``
            lock_timeout: Seconds to wait for the lock when loading or in a session
            append_timeout: Seconds ``append_entry`` waits; negative waits until
                the lock is free
        """
        self.path = Path(path)
        self.lock_timeout = lock_timeout
        self.append_timeout = append_timeout
        self._lock = FileLock(str(self.path) + ".lock")

    def _read(self) -> List[HistoryEntry]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise LedgerError(f"Failed to read history {self.path}: {e}") from e
        if not isinstance(data, list):
            raise LedgerError(f"History {self.path} must contain a JSON list")
        try:
            return [HistoryEntry.from_dict(item) for item in data]
        except (TypeError, ValueError, AttributeError) as e:
            raise LedgerError(f"History {self.path} has an invalid entry: {e}") from e

    def _write(self, entries: List[HistoryEntry]) -> None:
        try:
            write_json_atomic(self.path, [e.to_dict() for e in entries])
        except OSError as e:
            raise LedgerError(f"Failed to write history {self.path}: {e}") from e

    @contextmanager
    def _locked(self, timeout: Optional[float] = None) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if timeout is None:
            timeout = self.lock_timeout
        try:
            self._lock.acquire(timeout=timeout)
        except Timeout as e:
            raise LedgerError(f"History is locked by another process: {self.path}") from e
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def session(self, timeout: Optional[float] = None) -> Iterator[LedgerSession]:
        """Hold the ledger lock, yield a snapshot, and write it back on success.

        Nothing is written if the body raises.
        """
        with self._locked(timeout):
            snapshot = LedgerSession(self._read())
            yield snapshot
            self._write(snapshot.entries)
            logger.debug(f"History saved ({len(snapshot.entries)} entries)")

    def load(self) -> List[HistoryEntry]:
        """Return all entries; an absent ledger is empty."""
        with self._locked():
            return self._read()

    def append_entry(self, entry: HistoryEntry) -> HistoryEntry:
        """Record a new submission.

        The stored entry is returned; it is an existing one, updated in place,
        if the (username, company) pair was already recorded.

        A status-check run holds the lock for its whole run, so this waits
        for it (see ``append_timeout``) rather than dropping the record.
        """
        with self.session(self.append_timeout) as ledger:
            stored = ledger.upsert(entry)
        logger.info(f"History saved: {entry.company} for {entry.username}")
        return stored
