"""
core/record_store.py - Calculation record persistence

RecordStore is the narrow interface the engine reads and writes records
through. Stores hand out copies, so a caller never mutates stored state
without going through save(), and save() is a compare-and-swap on the
record revision: a record loaded at revision N can only be saved while the
store still holds revision N.

Adapters:
- InMemoryRecordStore: process-local dict, used by tests and embedding code
- JsonFileRecordStore: one JSON document per calculation, used by the CLI
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import json
import logging
import os
import threading

from retrofit.errors import RecordConflict, RecordNotFound
from .record import CalculationRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """
    Abstract contract for calculation record storage.

    Implementations must guarantee that save() rejects a record whose
    revision does not match the stored one.
    """

    # ==================== Read ====================

    @abstractmethod
    def load(self, calculation_id: str) -> CalculationRecord:
        """
        Load a copy of the current record.

        Raises:
            RecordNotFound: if no record exists for the id.
        """
        pass

    @abstractmethod
    def exists(self, calculation_id: str) -> bool:
        pass

    @abstractmethod
    def list_ids(self) -> List[str]:
        pass

    # ==================== Write ====================

    @abstractmethod
    def create(self, record: CalculationRecord) -> CalculationRecord:
        """
        Insert a new record at revision 0.

        Raises:
            RecordConflict: if a record with the same id already exists.
        """
        pass

    @abstractmethod
    def save(self, calculation_id: str, record: CalculationRecord) -> CalculationRecord:
        """
        Persist a record loaded earlier from this store.

        Returns:
            A copy of the stored record with its revision advanced by one.

        Raises:
            RecordNotFound: if the record was deleted meanwhile.
            RecordConflict: if the stored revision moved since the load.
        """
        pass

    @abstractmethod
    def delete(self, calculation_id: str) -> None:
        pass


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class InMemoryRecordStore(RecordStore):
    """Thread-safe dict-backed store."""

    def __init__(self):
        self._records: Dict[str, CalculationRecord] = {}
        self._lock = threading.Lock()

    def load(self, calculation_id: str) -> CalculationRecord:
        with self._lock:
            record = self._records.get(calculation_id)
            if record is None:
                raise RecordNotFound(calculation_id)
            return record.copy()

    def exists(self, calculation_id: str) -> bool:
        with self._lock:
            return calculation_id in self._records

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def create(self, record: CalculationRecord) -> CalculationRecord:
        with self._lock:
            existing = self._records.get(record.calculation_id)
            if existing is not None:
                raise RecordConflict(record.calculation_id, 0, existing.revision)
            stored = record.copy()
            stored.revision = 0
            self._records[record.calculation_id] = stored
            logger.debug(f"Created calculation {record.calculation_id}")
            return stored.copy()

    def save(self, calculation_id: str, record: CalculationRecord) -> CalculationRecord:
        with self._lock:
            current = self._records.get(calculation_id)
            if current is None:
                raise RecordNotFound(calculation_id)
            if current.revision != record.revision:
                raise RecordConflict(calculation_id, record.revision, current.revision)
            stored = record.copy()
            stored.calculation_id = calculation_id
            stored.revision = current.revision + 1
            self._records[calculation_id] = stored
            return stored.copy()

    def delete(self, calculation_id: str) -> None:
        with self._lock:
            self._records.pop(calculation_id, None)


# =============================================================================
# JSON FILE STORE
# =============================================================================

class JsonFileRecordStore(RecordStore):
    """
    One JSON file per calculation under data_dir.

    The revision check and the write happen under a process-local lock;
    files are replaced atomically so a reader never sees a partial write.
    """

    def __init__(self, data_dir: str):
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, calculation_id: str) -> Path:
        return self._dir / f"{calculation_id}.json"

    def _read(self, calculation_id: str) -> Optional[CalculationRecord]:
        path = self._path(calculation_id)
        if not path.exists():
            return None
        with open(path) as f:
            return CalculationRecord.from_dict(json.load(f))

    def _write(self, record: CalculationRecord) -> None:
        path = self._path(record.calculation_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(record.to_dict(), f, indent=2, default=str)
        os.replace(tmp, path)

    def load(self, calculation_id: str) -> CalculationRecord:
        with self._lock:
            record = self._read(calculation_id)
        if record is None:
            raise RecordNotFound(calculation_id)
        return record

    def exists(self, calculation_id: str) -> bool:
        return self._path(calculation_id).exists()

    def list_ids(self) -> List[str]:
        return sorted(p.stem for p in self._dir.glob("*.json"))

    def create(self, record: CalculationRecord) -> CalculationRecord:
        with self._lock:
            existing = self._read(record.calculation_id)
            if existing is not None:
                raise RecordConflict(record.calculation_id, 0, existing.revision)
            stored = record.copy()
            stored.revision = 0
            self._write(stored)
        logger.info(f"Created calculation {record.calculation_id} in {self._dir}")
        return stored

    def save(self, calculation_id: str, record: CalculationRecord) -> CalculationRecord:
        with self._lock:
            current = self._read(calculation_id)
            if current is None:
                raise RecordNotFound(calculation_id)
            if current.revision != record.revision:
                raise RecordConflict(calculation_id, record.revision, current.revision)
            stored = record.copy()
            stored.calculation_id = calculation_id
            stored.revision = current.revision + 1
            self._write(stored)
        return stored.copy()

    def delete(self, calculation_id: str) -> None:
        with self._lock:
            path = self._path(calculation_id)
            if path.exists():
                path.unlink()


# =============================================================================
# PER-CALCULATION LOCKING
# =============================================================================

class KeyedLock:
    """
    One re-entrant lock per calculation id.

    Serializes cascades on the same calculation inside one process. Locks are
    dropped once no thread holds or waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._waiters: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def active_keys(self) -> List[str]:
        with self._guard:
            return sorted(self._locks)


def create_record_store(backend: str = "memory", data_dir: Optional[str] = None) -> RecordStore:
    """Build a store from StorageConfig values."""
    if backend == "memory":
        return InMemoryRecordStore()
    if backend == "json":
        return JsonFileRecordStore(data_dir or "./storage/calculations")
    raise ValueError(f"Unknown storage backend: {backend}")
