"""
Alert lifecycle exports.
"""

from .schema import (
    Alert,
    AlertCreate,
    AlertRule,
    AlertRuleCreate,
    AlertStatus,
    RuleEscalation,
    RuleNotifications,
    RuleThresholds,
)
from .config import default_alert_rules, demo_alerts
from .service import AlertService, format_age, priority_score

__all__ = [
    "Alert",
    "AlertCreate",
    "AlertRule",
    "AlertRuleCreate",
    "AlertService",
    "AlertStatus",
    "RuleEscalation",
    "RuleNotifications",
    "RuleThresholds",
    "default_alert_rules",
    "demo_alerts",
    "format_age",
    "priority_score",
]
