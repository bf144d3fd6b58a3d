"""
In-memory repositories.

Dict-backed stand-ins for a database. Records are copied on the way in and
out so callers never share mutable state with the store, and every access is
guarded by a lock because the HTTP server handles requests on many threads.
"""

from __future__ import annotations

import itertools
import threading
from typing import Dict, Iterable, List, Optional, TypeVar

from pydantic import BaseModel

from aquawatch.core.exceptions import NotFoundError

from .base import Repository

T = TypeVar("T", bound=BaseModel)


class InMemoryRepository(Repository[T]):
    """
    Thread-safe dict repository for pydantic records with an ``id`` field.
    """

    id_prefix = "ID"

    def __init__(self, records: Optional[Iterable[T]] = None) -> None:
        self._records: Dict[str, T] = {}
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        for record in records or []:
            self._records[record.id] = record.model_copy(deep=True)

    def next_id(self) -> str:
        with self._lock:
            while True:
                candidate = f"{self.id_prefix}{next(self._counter):06d}"
                if candidate not in self._records:
                    return candidate

    def add(self, record: T) -> T:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        return record

    def get(self, record_id: str) -> Optional[T]:
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record is not None else None

    def list(self) -> List[T]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._records.values()]

    def update(self, record: T) -> T:
        with self._lock:
            if record.id not in self._records:
                raise NotFoundError(f"{type(record).__name__} {record.id} not found")
            self._records[record.id] = record.model_copy(deep=True)
        return record

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class AlertRepository(InMemoryRepository):
    id_prefix = "ALT"


class AlertRuleRepository(InMemoryRepository):
    id_prefix = "RULE"


class RecipientRepository(InMemoryRepository):
    id_prefix = "R"


class BroadcastRepository(InMemoryRepository):
    id_prefix = "BC"
