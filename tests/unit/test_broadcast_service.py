"""
Unit tests for recipients and broadcast messaging.
"""

from datetime import datetime, timezone

import pytest

from aquawatch.anomaly.schema import AnomalyType
from aquawatch.core.config import AlertConfig
from aquawatch.core.exceptions import InvalidInputError, PersistenceError
from backend.broadcast.config import demo_broadcasts, demo_recipients
from backend.broadcast.service import (
    BroadcastService,
    RecipientService,
    emergency_template,
    maintenance_template,
)
from backend.notifications.channels import ChannelRegistry, NotificationChannel
from backend.notifications.dispatcher import NotificationDispatcher
from backend.schema import Channel
from backend.storage.memory import BroadcastRepository, RecipientRepository

NOW = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)


class CountingChannel(NotificationChannel):
    def __init__(self, channel, fail_for=()):
        self.channel = channel
        self.fail_for = set(fail_for)
        self.addresses = []

    def send(self, address, subject, body):
        if address in self.fail_for:
            raise RuntimeError("undeliverable")
        self.addresses.append(address)


class FailingRecipientRepository(RecipientRepository):
    """Every update fails."""

    def __init__(self, records):
        super().__init__(records)
        self.update_attempts = 0

    def update(self, record):
        self.update_attempts += 1
        raise PersistenceError("database unavailable")


class FlakyBroadcastRepository(BroadcastRepository):
    """Fails the first ``failures`` writes."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def add(self, record):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise PersistenceError("database unavailable")
        return super().add(record)


@pytest.fixture
def recipients():
    return RecipientRepository(demo_recipients(NOW))


@pytest.fixture
def recipient_service(recipients):
    return RecipientService(recipients, clock=lambda: NOW)


def _broadcasts(recipients, *channels):
    registry = ChannelRegistry(channels) if channels else None
    return BroadcastService(
        BroadcastRepository(demo_broadcasts(NOW)),
        recipients,
        NotificationDispatcher(registry),
        clock=lambda: NOW,
    )


def test_list_recipients_sorted_and_filtered(recipient_service):
    names = [r.name for r in recipient_service.list_recipients()]
    assert names == sorted(names, key=str.lower)
    assert len(names) == 7

    officials = recipient_service.list_recipients(group="officials", active=True)
    assert {r.id for r in officials} == {"R001", "R002", "R006"}
    assert [r.id for r in recipient_service.list_recipients(active=False)] == ["R007"]


def test_group_stats_count_active_only(recipient_service):
    assert recipient_service.group_stats() == {
        "officials": 3,
        "residents": 2,
        "maintenance": 2,
        "emergency": 3,
        "total": 6,
    }


def test_add_recipient(recipient_service):
    recipient = recipient_service.add_recipient(
        {"name": "Pump Operator", "phone": "+91-9000000000", "groups": ["maintenance"]}
    )
    assert recipient.id == "R000001"
    assert recipient.created_at == NOW
    assert recipient.active is True


@pytest.mark.parametrize(
    "data",
    [
        {"name": "No contact", "groups": ["residents"]},
        {"name": "No groups", "email": "x@example.org", "groups": []},
        {"name": "Bad group", "email": "x@example.org", "groups": ["press"]},
        {"email": "x@example.org", "groups": ["residents"]},
    ],
)
def test_add_recipient_validation(recipient_service, data):
    with pytest.raises(InvalidInputError):
        recipient_service.add_recipient(data)


def test_target_recipients(recipients):
    service = _broadcasts(recipients)
    assert {r.id for r in service.target_recipients(["all"])} == {"R001", "R002", "R003", "R004", "R005", "R006"}
    assert {r.id for r in service.target_recipients(["emergency"])} == {"R001", "R003", "R004"}
    assert {r.id for r in service.target_recipients(["residents"])} == {"R005", "R006"}


def test_send_broadcast_counts_deliveries(recipients):
    sms = CountingChannel(Channel.SMS)
    whatsapp = CountingChannel(Channel.WHATSAPP)
    service = _broadcasts(recipients, sms, whatsapp)

    broadcast, targeted = service.send_broadcast(
        {
            "title": "Supply interruption",
            "message": "Main line repair tonight",
            "channels": ["sms", "whatsapp"],
            "targetGroups": ["residents"],
        }
    )

    # R005 has sms and whatsapp, R006 has no whatsapp.
    assert {r.id for r in targeted} == {"R005", "R006"}
    assert broadcast.recipient_count == 2
    assert broadcast.delivery_status.sent == 3
    assert broadcast.delivery_status.delivered == 3
    assert broadcast.delivery_status.failed == 0
    assert broadcast.sent_by == "system@kandavara.gov.in"
    assert recipients.get("R006").last_notified == NOW


def test_send_broadcast_records_failures(recipients):
    email = CountingChannel(Channel.EMAIL, fail_for={"president@kandavara.gov.in"})
    service = _broadcasts(recipients, email)

    broadcast, _ = service.send_broadcast(
        {"title": "Drill", "message": "Emergency drill", "channels": ["email"], "targetGroups": ["emergency"]}
    )
    assert broadcast.delivery_status.sent == 3
    assert broadcast.delivery_status.failed == 1
    assert broadcast.delivery_status.delivered == 2
    # R001 was not reached, so its last notification is unchanged.
    assert recipients.get("R001").last_notified != NOW


def test_broadcast_history_newest_first(recipients):
    service = _broadcasts(recipients)
    service.send_broadcast({"title": "T", "message": "M", "channels": ["email"], "targetGroups": ["all"]})

    page, total = service.list_broadcasts(limit=1)
    assert total == 2
    assert page[0].id == "BC000001"


def test_send_broadcast_validation(recipients):
    service = _broadcasts(recipients)
    with pytest.raises(InvalidInputError):
        service.send_broadcast({"title": "T", "message": "M", "channels": [], "targetGroups": ["all"]})
    with pytest.raises(InvalidInputError):
        service.send_broadcast({"title": "T", "message": "M", "channels": ["email"], "targetGroups": ["press"]})


def test_send_broadcast_without_active_targets():
    lonely = RecipientRepository([r for r in demo_recipients(NOW) if r.id == "R007"])
    service = _broadcasts(lonely)
    with pytest.raises(InvalidInputError):
        service.send_broadcast({"title": "T", "message": "M", "channels": ["sms"], "targetGroups": ["officials"]})


def test_templates():
    template = emergency_template(AnomalyType.LEAK, "Ward 3")
    assert template["title"] == "URGENT: Major Water Leak - Ward 3"
    assert template["priority"] == "emergency"

    with pytest.raises(InvalidInputError):
        emergency_template(AnomalyType.NONE, "Ward 3")
    with pytest.raises(InvalidInputError):
        emergency_template("flood", "Ward 3")

    assert maintenance_template("valve swap")["priority"] == "medium"


def test_broadcast_write_is_retried():
    delays = []
    history = FlakyBroadcastRepository(failures=2)
    service = BroadcastService(
        history,
        RecipientRepository(demo_recipients(NOW)),
        clock=lambda: NOW,
        settings=AlertConfig(retry_base_delay_seconds=0.1),
        sleep=delays.append,
    )

    broadcast, _ = service.send_broadcast(
        {"title": "T", "message": "M", "channels": ["email"], "targetGroups": ["officials"]}
    )
    assert history.attempts == 3
    assert history.get(broadcast.id) is not None
    assert len(delays) == 2


def test_recipient_stamp_failure_does_not_abort_broadcast():
    delays = []
    recipients = FailingRecipientRepository(demo_recipients(NOW))
    history = BroadcastRepository()
    service = BroadcastService(
        history,
        recipients,
        clock=lambda: NOW,
        settings=AlertConfig(persist_retries=2),
        sleep=delays.append,
    )

    broadcast, targeted = service.send_broadcast(
        {"title": "T", "message": "M", "channels": ["sms"], "targetGroups": ["residents"]}
    )
    assert broadcast.delivery_status.delivered == 2
    assert history.get(broadcast.id) is not None
    # Two attempts per reached recipient, one backoff between them.
    assert recipients.update_attempts == 2 * len(targeted)
    assert len(delays) == len(targeted)
