"""Append-only, resource-keyed state store backed by a JSON-lines journal."""

import contextlib
import os
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union
from pydantic import ValidationError
from .models import StateRecord, JournalEntry, JournalOp, utc_now
from ..utils.errors import StateConflict, StateError
from ..utils.logging import get_logger

logger = get_logger("state.store")

DEFAULT_STATE_FILE = "converge.state.jsonl"


class StateStore:
    """
    Last successfully applied snapshot of every live resource.

    Every committed write appends one journal line (``put`` with the full
    record, or ``delete``) carrying a monotonically increasing serial. The
    current state is the fold of the journal. A line is the unit of
    atomicity: a record is either fully present or absent.

    Before appending, the store checks that the journal has not grown since
    it last read or wrote it; if it has, another writer is active and
    ``StateConflict`` is raised.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._records: Dict[str, StateRecord] = {}
        self._serial = 0
        self._size_seen = 0
        self._good_offset = 0
        self._missing_newline = False
        self._lock = threading.RLock()
        self._key_locks: Dict[str, threading.RLock] = {}
        self._key_locks_guard = threading.Lock()
        self.reload()

    @property
    def serial(self) -> int:
        """Serial of the last committed journal entry (0 for an empty store)."""
        with self._lock:
            return self._serial

    def reload(self) -> None:
        """Re-read the journal from disk."""
        with self._lock:
            self._records = {}
            self._serial = 0
            self._size_seen = 0
            self._good_offset = 0
            self._missing_newline = False
            if self.path is None or not self.path.exists():
                return

            try:
                with open(self.path, 'rb') as f:
                    data = f.read()
            except OSError as e:
                raise StateError(f"Cannot read state file {self.path}: {e}")

            self._size_seen = len(data)
            offset = 0
            lines = data.split(b"\n")
            for idx, raw in enumerate(lines):
                is_last = idx == len(lines) - 1
                if raw.strip() == b"":
                    if is_last:
                        break
                    offset += len(raw) + 1
                    continue
                try:
                    entry = JournalEntry.model_validate_json(raw)
                except (ValidationError, ValueError) as e:
                    if is_last:
                        # Crash mid-append; the entry was never committed.
                        logger.warning(f"Ignoring torn trailing entry in {self.path}")
                        break
                    raise StateError(f"Corrupt state journal {self.path} at line {idx + 1}: {e}")
                self._apply_entry(entry)
                if is_last:
                    # Complete entry without its newline; the next append adds it.
                    offset += len(raw)
                    self._missing_newline = True
                else:
                    offset += len(raw) + 1

            self._good_offset = offset
            logger.debug(f"Loaded {len(self._records)} state records (serial {self._serial}) from {self.path}")

    def get(self, address: str) -> Optional[StateRecord]:
        with self._lock:
            record = self._records.get(address)
            return record.model_copy(deep=True) if record else None

    def records(self) -> Dict[str, StateRecord]:
        """Copy of all records keyed by address."""
        with self._lock:
            return {addr: rec.model_copy(deep=True) for addr, rec in sorted(self._records.items())}

    def addresses(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return address in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @contextlib.contextmanager
    def locked(self, address: str) -> Iterator[None]:
        """Hold the per-address write lock."""
        with self._key_locks_guard:
            key_lock = self._key_locks.setdefault(address, threading.RLock())
        with key_lock:
            yield

    def put(self, record: StateRecord) -> StateRecord:
        """
        Commit a record for a successfully applied resource.

        Returns:
            The stored record, with its serial set

        Raises:
            StateConflict: If another writer modified the journal
            StateError: If the journal cannot be written
        """
        with self.locked(record.address):
            with self._lock:
                serial = self._serial + 1
                stored = record.model_copy(update={"serial": serial, "updated_at": utc_now()}, deep=True)
                self._append(JournalEntry(serial=serial, op=JournalOp.PUT, address=record.address, record=stored))
                self._records[record.address] = stored
                self._serial = serial
                logger.debug(f"Committed state for {record.address} (serial {serial})")
                return stored.model_copy(deep=True)

    def delete(self, address: str) -> None:
        """Commit the removal of a destroyed resource."""
        with self.locked(address):
            with self._lock:
                if address not in self._records:
                    raise StateError(f"No state record for {address}", address=address)
                serial = self._serial + 1
                self._append(JournalEntry(serial=serial, op=JournalOp.DELETE, address=address))
                del self._records[address]
                self._serial = serial
                logger.debug(f"Removed state for {address} (serial {serial})")

    def compact(self) -> int:
        """
        Rewrite the journal as one ``put`` per live record.

        Serials are preserved so saved plans stay comparable.

        Returns:
            Number of records written
        """
        with self._lock:
            if self.path is None:
                return len(self._records)
            self._check_unchanged()
            lines = []
            for record in sorted(self._records.values(), key=lambda r: r.serial):
                entry = JournalEntry(serial=record.serial, op=JournalOp.PUT, address=record.address, record=record)
                lines.append(entry.model_dump_json())
            last_serial = max((r.serial for r in self._records.values()), default=0)
            if last_serial < self._serial:
                # Newest entry was a delete; keep the head serial.
                lines.append(JournalEntry(serial=self._serial, op=JournalOp.CHECKPOINT, address="*").model_dump_json())

            payload = ("\n".join(lines) + "\n").encode("utf-8") if lines else b""
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                with open(tmp_path, 'wb') as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except OSError as e:
                raise StateError(f"Failed to compact state file {self.path}: {e}")

            self._size_seen = len(payload)
            self._good_offset = len(payload)
            self._missing_newline = False
            logger.info(f"Compacted state journal to {len(self._records)} records")
            return len(self._records)

    def _apply_entry(self, entry: JournalEntry) -> None:
        if entry.serial <= self._serial:
            raise StateError(f"Non-increasing serial {entry.serial} in state journal {self.path}")
        if entry.op == JournalOp.PUT:
            if entry.record is None:
                raise StateError(f"Journal 'put' entry without record for {entry.address}")
            self._records[entry.address] = entry.record
        elif entry.op == JournalOp.DELETE:
            self._records.pop(entry.address, None)
        self._serial = entry.serial

    def _check_unchanged(self) -> None:
        try:
            size = self.path.stat().st_size if self.path.exists() else 0
        except OSError as e:
            raise StateError(f"Cannot stat state file {self.path}: {e}")
        if size != self._size_seen:
            raise StateConflict(
                f"State file {self.path} was modified by another process "
                f"(expected {self._size_seen} bytes, found {size}). Re-run plan."
            )

    def _append(self, entry: JournalEntry) -> None:
        if self.path is None:
            return
        self._check_unchanged()
        line = (entry.model_dump_json() + "\n").encode("utf-8")
        if self._missing_newline:
            line = b"\n" + line
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'ab') as f:
                if self._good_offset != self._size_seen:
                    f.truncate(self._good_offset)
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}: {e}", address=entry.address)
        self._good_offset += len(line)
        self._size_seen = self._good_offset
        self._missing_newline = False
