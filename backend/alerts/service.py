"""
Alert lifecycle service.

Creates alerts from classifications, applies the matching notification rule,
and tracks acknowledgement and resolution. Alert writes are retried with
exponential backoff; notification failures never block an alert.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from aquawatch.anomaly.schema import AnomalyResult, AnomalyType, Severity
from aquawatch.core.config import AlertConfig, config
from aquawatch.core.exceptions import InvalidInputError, NotFoundError
from backend.notifications.dispatcher import NotificationDispatcher
from backend.storage.base import Repository, persist_with_retry

from .schema import Alert, AlertCreate, AlertRule, AlertRuleCreate, AlertStatus

logger = logging.getLogger(__name__)

_SEVERITY_SCORES = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}
_TYPE_SCORES = {AnomalyType.THEFT: 3, AnomalyType.BLOCKAGE: 2, AnomalyType.LEAK: 1}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def priority_score(alert: Alert) -> int:
    """
    Triage score: severity (3/2/1) times type weight (theft 3, blockage 2, leak 1).
    """

    return _SEVERITY_SCORES[alert.severity] * _TYPE_SCORES[alert.anomaly_type]


def format_age(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """
    Coarse age label: "2d ago", "3h ago" or "15m ago".
    """

    now = now or _utcnow()
    minutes = int((now - timestamp).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    return f"{minutes}m ago"


class AlertService:
    """
    Alert and alert-rule operations over injected repositories.

    Notes:
    - The first enabled rule whose anomaly type matches is applied.
    - ``sleep`` and ``clock`` are injectable so retries and timestamps are
      deterministic in tests.
    """

    def __init__(
        self,
        alerts: Repository,
        rules: Repository,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[AlertConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.alerts = alerts
        self.rules = rules
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.settings = settings or config.alerts
        self._clock = clock
        self._sleep = sleep

    # Alerts

    def list_alerts(
        self,
        status: Optional[str] = None,
        household_id: Optional[str] = None,
        severity: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        """
        Filter alerts, newest first.

        Args:
            status: Keep only this status
            household_id: Keep only this household
            severity: Keep only this severity
            limit: Maximum number returned (defaults to the configured limit)
        """
        alerts = self.alerts.list()
        if status:
            alerts = [a for a in alerts if a.status.value == status]
        if household_id:
            alerts = [a for a in alerts if a.household_id == household_id]
        if severity:
            alerts = [a for a in alerts if a.severity.value == severity]

        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        limit = self.settings.default_limit if limit is None else limit
        return alerts[: max(limit, 0)]

    def get_alert(self, alert_id: str) -> Alert:
        alert = self.alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert

    def create_alert(
        self,
        household_id: str,
        anomaly_type: Union[str, AnomalyType],
        severity: Union[str, Severity],
        message: str,
    ) -> Alert:
        """
        Persist a new active alert and notify per the matching rule.

        Raises:
            InvalidInputError: If the fields are missing or invalid
            PersistenceError: If the store keeps failing after all retries
        """
        try:
            request = AlertCreate(
                household_id=household_id,
                anomaly_type=anomaly_type,
                severity=severity,
                message=message,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Invalid alert: {validation_message(e)}") from e

        alert = Alert(
            id=self.alerts.next_id(),
            household_id=request.household_id,
            anomaly_type=request.anomaly_type,
            severity=request.severity,
            message=request.message,
            timestamp=self._clock(),
        )
        self._with_retry(self.alerts.add, alert)
        logger.info(
            "Alert %s created: %s/%s for %s",
            alert.id,
            alert.anomaly_type.value,
            alert.severity.value,
            alert.household_id,
        )

        rule = self.find_rule(alert.anomaly_type)
        if rule is not None:
            alert.notifications_sent = self.dispatcher.dispatch_alert(alert, rule)
            self._with_retry(self.alerts.update, alert)
        else:
            logger.info("No enabled rule for %s; alert %s not notified", alert.anomaly_type.value, alert.id)

        return alert

    def create_from_result(self, result: AnomalyResult) -> Alert:
        if not result.is_anomaly:
            raise InvalidInputError(
                f"Reading for household {result.household_id} is normal; no alert raised",
                household_id=result.household_id,
            )
        return self.create_alert(
            household_id=result.household_id,
            anomaly_type=result.anomaly_type,
            severity=result.severity,
            message=result.message,
        )

    def update_status(
        self,
        alert_id: str,
        status: Union[str, AlertStatus],
        acknowledged_by: Optional[str] = None,
    ) -> Alert:
        """
        Move an alert through its lifecycle.

        Acknowledging stamps who and when (``system`` when nobody is named).
        Resolving stamps the resolution time and backfills the
        acknowledgement if it was skipped.
        """
        try:
            status = AlertStatus(status)
        except ValueError as e:
            raise InvalidInputError(f"Invalid alert status: {status}", field="status") from e

        alert = self.get_alert(alert_id)
        now = self._clock()
        alert.status = status

        if status == AlertStatus.ACKNOWLEDGED:
            alert.acknowledged_by = acknowledged_by or "system"
            alert.acknowledged_at = now

        if status == AlertStatus.RESOLVED:
            alert.resolved_at = now
            if alert.acknowledged_at is None:
                alert.acknowledged_by = acknowledged_by or "system"
                alert.acknowledged_at = now

        self._with_retry(self.alerts.update, alert)
        logger.info("Alert %s is now %s", alert.id, status.value)
        return alert

    # Rules

    def list_rules(self) -> List[AlertRule]:
        return sorted(self.rules.list(), key=lambda r: r.id)

    def find_rule(self, anomaly_type: AnomalyType) -> Optional[AlertRule]:
        for rule in self.list_rules():
            if rule.enabled and rule.anomaly_type == anomaly_type:
                return rule
        return None

    def create_rule(self, data: Dict[str, Any]) -> AlertRule:
        try:
            request = AlertRuleCreate.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid alert rule: {validation_message(e)}") from e

        rule = AlertRule(id=self.rules.next_id(), **request.model_dump())
        self._with_retry(self.rules.add, rule)
        logger.info("Alert rule %s created for %s", rule.id, rule.anomaly_type.value)
        return rule

    def _with_retry(self, operation: Callable[[Any], Any], record: Any) -> Any:
        return persist_with_retry(operation, record, self.settings, self._sleep)
