"""
Notification channel and dispatcher exports.
"""

from .channels import ChannelRegistry, LoggingChannel, NotificationChannel
from .dispatcher import NotificationDispatcher, alert_body, alert_subject

__all__ = [
    "ChannelRegistry",
    "LoggingChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "alert_body",
    "alert_subject",
]
