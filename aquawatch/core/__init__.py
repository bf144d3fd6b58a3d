"""
Core module: Configuration, logging, and exception handling.
"""

from .config import Config, config
from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    NotificationError,
    PersistenceError,
    WaterMonitorError,
)

__all__ = [
    "Config",
    "config",
    "WaterMonitorError",
    "InvalidInputError",
    "NotFoundError",
    "PersistenceError",
    "NotificationError",
    "ConfigurationError",
]
