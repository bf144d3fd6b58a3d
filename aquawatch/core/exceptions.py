"""
Custom exceptions for the AquaWatch monitoring service.

These exceptions provide clear error semantics across the system.
Use them to distinguish between bad input, missing records, storage problems,
and delivery failures.
"""

from typing import Optional


class WaterMonitorError(Exception):
    """Base exception for monitoring failures."""
    pass


class InvalidInputError(WaterMonitorError):
    """
    Raised when a submitted reading or request body fails validation.

    Carries the batch position and household of the offending record so the
    caller can report exactly which record was rejected.
    """

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        household_id: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.index = index
        self.household_id = household_id
        self.field = field


class NotFoundError(WaterMonitorError):
    """Raised when an alert, rule or recipient does not exist."""
    pass


class PersistenceError(WaterMonitorError):
    """Raised when a repository cannot store a record. Retryable."""
    pass


class NotificationError(WaterMonitorError):
    """Raised by a channel when a single delivery fails."""
    pass


class ConfigurationError(WaterMonitorError):
    """Raised when configuration is invalid or missing."""
    pass
