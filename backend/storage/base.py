"""
Repository contract for backend records.

Services depend on this interface so the in-memory store can be swapped for
a database-backed one without touching service code. Implementations raise
PersistenceError when a write cannot be completed; callers treat it as
retryable.
"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Callable, Generic, List, Optional, TypeVar

from aquawatch.core.config import AlertConfig
from aquawatch.core.exceptions import PersistenceError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Repository(ABC, Generic[T]):
    """CRUD contract keyed by the record's string ``id``."""

    @abstractmethod
    def next_id(self) -> str:
        """Reserve a new unique identifier."""
        pass

    @abstractmethod
    def add(self, record: T) -> T:
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[T]:
        """Return the record, or None when it does not exist."""
        pass

    @abstractmethod
    def list(self) -> List[T]:
        pass

    @abstractmethod
    def update(self, record: T) -> T:
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Remove a record. Returns False when it did not exist."""
        pass


def persist_with_retry(
    operation: Callable[[T], T],
    record: T,
    settings: AlertConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run a repository write, retrying PersistenceError with exponential
    backoff plus up to 10% jitter.

    Raises:
        PersistenceError: When the last attempt still fails
    """
    attempts = settings.persist_retries
    record_id = getattr(record, "id", record)
    for attempt in range(1, attempts + 1):
        try:
            return operation(record)
        except PersistenceError as e:
            if attempt == attempts:
                logger.error("Persisting %s failed after %d attempts: %s", record_id, attempts, e)
                raise
            delay = min(
                settings.retry_base_delay_seconds * (2 ** (attempt - 1)),
                settings.retry_max_delay_seconds,
            )
            delay += random.uniform(0, delay * 0.1)
            logger.warning(
                "Persisting %s failed (attempt %d/%d), retrying in %.2fs: %s",
                record_id, attempt, attempts, delay, e,
            )
            sleep(delay)
