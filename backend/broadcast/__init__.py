"""
Recipient directory and broadcast exports.
"""

from .config import demo_broadcasts, demo_recipients
from .schema import (
    BroadcastMessage,
    BroadcastPriority,
    BroadcastRequest,
    DeliveryStatus,
    Recipient,
    RecipientCreate,
    RecipientGroup,
    TargetGroup,
)
from .service import BroadcastService, RecipientService, emergency_template, maintenance_template

__all__ = [
    "BroadcastMessage",
    "BroadcastPriority",
    "BroadcastRequest",
    "BroadcastService",
    "DeliveryStatus",
    "Recipient",
    "RecipientCreate",
    "RecipientGroup",
    "RecipientService",
    "TargetGroup",
    "demo_broadcasts",
    "demo_recipients",
    "emergency_template",
    "maintenance_template",
]
