"""
Recipient directory and broadcast messaging.

Broadcasts go to every active recipient in the target groups, over each
requested channel for which the recipient has a contact. Individual delivery
failures are counted and logged; they do not stop the broadcast.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from aquawatch.anomaly.schema import AnomalyType
from aquawatch.core.config import AlertConfig, config
from aquawatch.core.exceptions import InvalidInputError, PersistenceError
from backend.alerts.service import validation_message
from backend.notifications.dispatcher import NotificationDispatcher
from backend.storage.base import Repository, persist_with_retry

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

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecipientService:
    """Recipient listing, statistics and registration."""

    def __init__(
        self,
        recipients: Repository,
        clock: Callable[[], datetime] = _utcnow,
        default_limit: int = 50,
    ) -> None:
        self.recipients = recipients
        self._clock = clock
        self.default_limit = default_limit

    def list_recipients(
        self,
        group: Optional[str] = None,
        active: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Recipient]:
        """
        Filter recipients by group and active flag, sorted by name.
        """
        recipients = self.recipients.list()
        if group:
            recipients = [r for r in recipients if group in {g.value for g in r.groups}]
        if active is not None:
            recipients = [r for r in recipients if r.active == active]

        recipients.sort(key=lambda r: r.name.lower())
        limit = self.default_limit if limit is None else limit
        return recipients[: max(limit, 0)]

    def group_stats(self) -> Dict[str, int]:
        """Active recipient counts per group, plus the active total."""
        active = [r for r in self.recipients.list() if r.active]
        stats = {group.value: sum(1 for r in active if group in r.groups) for group in RecipientGroup}
        stats["total"] = len(active)
        return stats

    def add_recipient(self, data: Dict[str, Any]) -> Recipient:
        try:
            request = RecipientCreate.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid recipient: {validation_message(e)}") from e

        recipient = Recipient(
            id=self.recipients.next_id(),
            created_at=self._clock(),
            **request.model_dump(),
        )
        self.recipients.add(recipient)
        logger.info("Recipient %s (%s) added", recipient.id, recipient.name)
        return recipient


class BroadcastService:
    """
    Sends and records broadcast messages.

    Writes share the alert retry settings. A recipient whose
    ``last_notified`` stamp cannot be saved is logged and skipped, since
    its deliveries have already gone out.
    """

    def __init__(
        self,
        broadcasts: Repository,
        recipients: Repository,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = _utcnow,
        settings: Optional[AlertConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.broadcasts = broadcasts
        self.recipients = recipients
        self.dispatcher = dispatcher or NotificationDispatcher()
        self._clock = clock
        self.settings = settings or config.alerts
        self._sleep = sleep

    def list_broadcasts(self, limit: Optional[int] = 20) -> Tuple[List[BroadcastMessage], int]:
        """Return (newest-first page, total stored)."""
        history = sorted(self.broadcasts.list(), key=lambda b: b.timestamp, reverse=True)
        page = history if limit is None else history[: max(limit, 0)]
        return page, len(history)

    def target_recipients(self, target_groups: Iterable[TargetGroup]) -> List[Recipient]:
        """
        Active recipients in any of the groups. ``all`` selects every active
        recipient.
        """
        targets = {TargetGroup(g).value for g in target_groups}
        active = [r for r in self.recipients.list() if r.active]
        if TargetGroup.ALL.value in targets:
            return active
        return [r for r in active if any(g.value in targets for g in r.groups)]

    def send_broadcast(self, data: Dict[str, Any]) -> Tuple[BroadcastMessage, List[Recipient]]:
        """
        Validate, deliver and record a broadcast.

        Raises:
            InvalidInputError: If required fields are missing or no active
                recipient matches the target groups
        """
        try:
            request = BroadcastRequest.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid broadcast: {validation_message(e)}") from e

        recipients = self.target_recipients(request.target_groups)
        if not recipients:
            raise InvalidInputError("No active recipients found for target groups", field="targetGroups")

        broadcast = BroadcastMessage(
            id=self.broadcasts.next_id(),
            timestamp=self._clock(),
            recipient_count=len(recipients),
            **request.model_dump(),
        )
        broadcast.delivery_status = self._deliver(broadcast, recipients)
        persist_with_retry(self.broadcasts.add, broadcast, self.settings, self._sleep)

        logger.info(
            "Broadcast %s sent to %d recipients: %s",
            broadcast.id,
            len(recipients),
            broadcast.delivery_status.model_dump(),
        )
        return broadcast, recipients

    def _deliver(self, broadcast: BroadcastMessage, recipients: List[Recipient]) -> DeliveryStatus:
        status = DeliveryStatus()
        now = self._clock()
        for recipient in recipients:
            reached = False
            for channel in broadcast.channels:
                address = recipient.address_for(channel)
                if not address:
                    continue
                status.sent += 1
                if self.dispatcher.deliver(channel, address, broadcast.title, broadcast.message):
                    status.delivered += 1
                    reached = True
                else:
                    status.failed += 1
            if reached:
                recipient.last_notified = now
                try:
                    persist_with_retry(self.recipients.update, recipient, self.settings, self._sleep)
                except PersistenceError as e:
                    logger.warning("Could not record notification time for %s: %s", recipient.id, e)
        return status


def emergency_template(anomaly_type: AnomalyType, location: str) -> Dict[str, str]:
    """Ready-made emergency broadcast for a confirmed anomaly at a location."""
    templates = {
        AnomalyType.THEFT: (
            f"URGENT: Water Theft Detected - {location}",
            f"Critical water theft detected in {location}. Immediate investigation required. "
            "Unusual consumption patterns indicate unauthorized usage. Please respond immediately.",
        ),
        AnomalyType.LEAK: (
            f"URGENT: Major Water Leak - {location}",
            f"Major water leak detected in {location}. Immediate repair required to prevent water "
            "loss and potential damage. Emergency response team dispatched.",
        ),
        AnomalyType.BLOCKAGE: (
            f"URGENT: Water Supply Blockage - {location}",
            f"Complete water supply blockage detected in {location}. Residents may be without water. "
            "Emergency maintenance team required immediately.",
        ),
    }
    try:
        anomaly_type = AnomalyType(anomaly_type)
    except ValueError as e:
        raise InvalidInputError(f"Unknown anomaly type: {anomaly_type}", field="type") from e
    if anomaly_type not in templates:
        raise InvalidInputError(f"No emergency template for {anomaly_type.value}")
    title, message = templates[anomaly_type]
    return {"title": title, "message": message, "priority": BroadcastPriority.EMERGENCY.value}


def maintenance_template(message: str) -> Dict[str, str]:
    return {
        "title": "Scheduled Water Maintenance",
        "message": f"Scheduled maintenance notification: {message}. We apologize for any inconvenience.",
        "priority": BroadcastPriority.MEDIUM.value,
    }
