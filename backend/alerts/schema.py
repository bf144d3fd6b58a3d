"""
Schema for alerts and alert rules.

Alerts are persisted records of actionable classifications. Rules decide
which channels and recipients are notified for each anomaly type.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import AfterValidator, Field

from aquawatch.anomaly.schema import AnomalyType, Severity
from backend.schema import ApiModel, Channel


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


def _actionable(value: AnomalyType) -> AnomalyType:
    if value == AnomalyType.NONE:
        raise ValueError("alerts cannot be raised for normal usage")
    return value


ActionableType = Annotated[AnomalyType, AfterValidator(_actionable)]


class Alert(ApiModel):
    """
    Persisted alert.

    Fields:
    - id: ALT-prefixed identifier
    - household_id: household the reading came from
    - anomaly_type: theft, leak or blockage (never none)
    - severity: copied from the classification
    - status: active -> acknowledged -> resolved
    - notifications_sent: channels with at least one successful delivery
    """

    id: str
    household_id: str = Field(min_length=1)
    anomaly_type: ActionableType
    severity: Severity
    message: str
    timestamp: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    notifications_sent: List[Channel] = Field(default_factory=list)


class AlertCreate(ApiModel):
    """Request body for a new alert."""

    household_id: str = Field(min_length=1)
    anomaly_type: ActionableType
    severity: Severity
    message: str = Field(min_length=1)


class RuleThresholds(ApiModel):
    """Optional per-type threshold hints recorded with a rule."""

    flow_multiplier: Optional[float] = None
    night_flow_threshold: Optional[float] = None
    zero_flow_threshold: Optional[float] = None
    min_duration: Optional[int] = None


class RuleNotifications(ApiModel):
    email: bool = False
    sms: bool = False
    whatsapp: bool = False
    recipients: List[str] = Field(default_factory=list)

    def channels(self) -> List[Channel]:
        enabled = {Channel.EMAIL: self.email, Channel.SMS: self.sms, Channel.WHATSAPP: self.whatsapp}
        return [channel for channel, on in enabled.items() if on]


class RuleEscalation(ApiModel):
    enabled: bool = False
    time_minutes: int = Field(30, ge=0)
    escalate_to_supervisor: bool = False


class AlertRule(ApiModel):
    """
    Notification rule for one anomaly type.

    The first enabled rule matching an alert's type is applied.
    """

    id: str
    name: str = Field(min_length=1)
    anomaly_type: ActionableType
    enabled: bool = True
    thresholds: RuleThresholds = Field(default_factory=RuleThresholds)
    notifications: RuleNotifications = Field(default_factory=RuleNotifications)
    escalation: RuleEscalation = Field(default_factory=RuleEscalation)


class AlertRuleCreate(ApiModel):
    """Request body for a new rule; name and anomaly_type are required."""

    name: str = Field(min_length=1)
    anomaly_type: ActionableType
    enabled: bool = True
    thresholds: RuleThresholds = Field(default_factory=RuleThresholds)
    notifications: RuleNotifications = Field(default_factory=RuleNotifications)
    escalation: RuleEscalation = Field(default_factory=RuleEscalation)
