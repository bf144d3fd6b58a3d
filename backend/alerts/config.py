"""
Default alert rules and demo alerts.

Seeds the in-memory store so a fresh server shows the rule set operators
start from: theft notifies admins by email/SMS with escalation, leaks go to
maintenance by email/WhatsApp, blockages go to field and emergency teams on
every channel.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from aquawatch.anomaly.schema import AnomalyType, Severity

from .schema import (
    Alert,
    AlertRule,
    AlertStatus,
    RuleEscalation,
    RuleNotifications,
    RuleThresholds,
)


def default_alert_rules() -> List[AlertRule]:
    return [
        AlertRule(
            id="RULE001",
            name="Water Theft Detection",
            anomaly_type=AnomalyType.THEFT,
            thresholds=RuleThresholds(flow_multiplier=1.5, min_duration=300_000),
            notifications=RuleNotifications(
                email=True,
                sms=True,
                recipients=["admin@panchayat.gov", "supervisor@panchayat.gov"],
            ),
            escalation=RuleEscalation(enabled=True, time_minutes=30, escalate_to_supervisor=True),
        ),
        AlertRule(
            id="RULE002",
            name="Leak Detection",
            anomaly_type=AnomalyType.LEAK,
            thresholds=RuleThresholds(night_flow_threshold=5, min_duration=1_800_000),
            notifications=RuleNotifications(
                email=True,
                whatsapp=True,
                recipients=["maintenance@panchayat.gov"],
            ),
            escalation=RuleEscalation(enabled=False, time_minutes=60),
        ),
        AlertRule(
            id="RULE003",
            name="Valve Blockage Detection",
            anomaly_type=AnomalyType.BLOCKAGE,
            thresholds=RuleThresholds(zero_flow_threshold=0.5, min_duration=7_200_000),
            notifications=RuleNotifications(
                email=True,
                sms=True,
                whatsapp=True,
                recipients=["field@panchayat.gov", "emergency@panchayat.gov"],
            ),
            escalation=RuleEscalation(enabled=True, time_minutes=15, escalate_to_supervisor=True),
        ),
    ]


def demo_alerts(now: Optional[datetime] = None) -> List[Alert]:
    now = now or datetime.now(timezone.utc)
    hour = timedelta(hours=1)
    return [
        Alert(
            id="ALT001",
            household_id="H003",
            anomaly_type=AnomalyType.THEFT,
            severity=Severity.HIGH,
            message="Unusual spike detected: 78.5 L/min (151% of normal)",
            timestamp=now - hour,
            notifications_sent=["email", "sms"],
        ),
        Alert(
            id="ALT002",
            household_id="H001",
            anomaly_type=AnomalyType.LEAK,
            severity=Severity.MEDIUM,
            message="Continuous flow during night hours: 12.3 L/min",
            timestamp=now - 2 * hour,
            status=AlertStatus.ACKNOWLEDGED,
            acknowledged_by="admin@panchayat.gov",
            acknowledged_at=now - hour,
            notifications_sent=["email"],
        ),
        Alert(
            id="ALT003",
            household_id="H005",
            anomaly_type=AnomalyType.BLOCKAGE,
            severity=Severity.HIGH,
            message="Zero flow detected: 0.1 L/min",
            timestamp=now - 3 * hour,
            status=AlertStatus.RESOLVED,
            acknowledged_by="field@panchayat.gov",
            acknowledged_at=now - 2 * hour,
            resolved_at=now - timedelta(minutes=30),
            notifications_sent=["email", "sms", "whatsapp"],
        ),
    ]
