"""
Repository interface and in-memory implementations.
"""

from .base import Repository, persist_with_retry
from .memory import (
    AlertRepository,
    AlertRuleRepository,
    BroadcastRepository,
    InMemoryRepository,
    RecipientRepository,
)

__all__ = [
    "Repository",
    "persist_with_retry",
    "InMemoryRepository",
    "AlertRepository",
    "AlertRuleRepository",
    "RecipientRepository",
    "BroadcastRepository",
]
