"""
Demo recipients and broadcast history for a fresh in-memory store.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .schema import BroadcastMessage, DeliveryStatus, Recipient

_CONTACTS = [
    # id, name, email, phone, whatsapp, groups, active, age_days, last_notified_minutes
    ("R001", "Panchayat President", "president", "9876543210", True, ["officials", "emergency"], True, 30, 60),
    ("R002", "Water Department Head", "water", "9876543211", True, ["officials", "maintenance"], True, 25, 120),
    ("R003", "Field Engineer", "field", "9876543212", True, ["maintenance", "emergency"], True, 20, 30),
    ("R004", "Emergency Response Team", "emergency", "9876543213", True, ["emergency"], True, 15, None),
    ("R005", "Resident Representative", "residents", "9876543214", True, ["residents"], True, 10, None),
    ("R006", "Ward Member 1", "ward1", "9876543215", False, ["officials", "residents"], True, 5, None),
    ("R007", "Ward Member 2", "ward2", "9876543216", False, ["officials", "residents"], False, 3, None),
]


def demo_recipients(now: Optional[datetime] = None) -> List[Recipient]:
    now = now or datetime.now(timezone.utc)
    recipients = []
    for rid, name, mailbox, number, has_whatsapp, groups, active, age_days, notified in _CONTACTS:
        phone = f"+91-{number}"
        recipients.append(
            Recipient(
                id=rid,
                name=name,
                email=f"{mailbox}@kandavara.gov.in",
                phone=phone,
                whatsapp=phone if has_whatsapp else None,
                groups=groups,
                active=active,
                created_at=now - timedelta(days=age_days),
                last_notified=now - timedelta(minutes=notified) if notified else None,
            )
        )
    return recipients


def demo_broadcasts(now: Optional[datetime] = None) -> List[BroadcastMessage]:
    now = now or datetime.now(timezone.utc)
    return [
        BroadcastMessage(
            id="BC001",
            title="Water Supply Maintenance",
            message=(
                "Scheduled maintenance on main water line from 2 PM to 6 PM today. "
                "Water supply will be temporarily interrupted."
            ),
            channels=["email", "sms", "whatsapp"],
            target_groups=["all"],
            sent_by="admin@kandavara.gov.in",
            timestamp=now - timedelta(hours=1),
            recipient_count=5,
            delivery_status=DeliveryStatus(sent=15, delivered=14, failed=1),
        )
    ]
