"""
Alert notification fan-out.

Delivers an alert over every channel a rule enables to every address the rule
lists. A failed delivery is logged and skipped; it never aborts the rest of
the fan-out or the alert itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional

from backend.schema import Channel

from .channels import ChannelRegistry

if TYPE_CHECKING:
    from backend.alerts.schema import Alert, AlertRule

logger = logging.getLogger(__name__)


def alert_subject(alert: Alert) -> str:
    return (
        f"[{alert.severity.value.upper()}] Water {alert.anomaly_type.value} alert "
        f"for household {alert.household_id}"
    )


def alert_body(alert: Alert) -> str:
    return f"{alert.message} (alert {alert.id} at {alert.timestamp.isoformat()})"


class NotificationDispatcher:
    """
    Sends alerts through the channel registry.

    Rules:
    - Channels come from the rule's email/sms/whatsapp flags, in that order.
    - A channel counts as sent when at least one address received it.
    """

    def __init__(self, registry: Optional[ChannelRegistry] = None) -> None:
        self.registry = registry or ChannelRegistry.logging_defaults()

    def deliver(self, channel: Channel, address: str, subject: str, body: str) -> bool:
        """
        Attempt one delivery. Returns False (after logging) on failure.
        """
        transport = self.registry.get(channel)
        if transport is None:
            logger.warning("No transport registered for %s; skipping %s", channel.value, address)
            return False
        try:
            transport.send(address, subject, body)
        except Exception as exc:
            logger.warning("Failed to send %s to %s: %s", channel.value, address, exc)
            return False
        return True

    def dispatch_alert(self, alert: Alert, rule: AlertRule) -> List[Channel]:
        subject = alert_subject(alert)
        body = alert_body(alert)

        sent: List[Channel] = []
        for channel in rule.notifications.channels():
            delivered = [
                self.deliver(channel, address, subject, body)
                for address in rule.notifications.recipients
            ]
            if any(delivered):
                sent.append(channel)
            else:
                logger.error("Alert %s: no %s deliveries succeeded", alert.id, channel.value)

        logger.info("Alert %s notified via %s", alert.id, [c.value for c in sent])
        return sent
