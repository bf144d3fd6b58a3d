"""
Notification transports.

Each channel delivers one message to one address. Vendor clients (email
service, SMS gateway, WhatsApp API) plug in behind this interface; the
logging channel is the default transport and records what would be sent.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from aquawatch.core.exceptions import NotificationError
from backend.schema import Channel

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """
    Single-transport sender.

    ``send`` raises NotificationError when a delivery fails.
    """

    channel: Channel

    @abstractmethod
    def send(self, address: str, subject: str, body: str) -> None:
        pass


class LoggingChannel(NotificationChannel):
    """Writes each delivery to the log instead of calling a vendor API."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    def send(self, address: str, subject: str, body: str) -> None:
        if not address:
            raise NotificationError(f"No {self.channel.value} address")
        logger.info("Sending %s to %s: %s", self.channel.value, address, subject)


class ChannelRegistry:
    """Maps Channel values to their configured transport."""

    def __init__(self, channels: Optional[Iterable[NotificationChannel]] = None) -> None:
        self._channels: Dict[Channel, NotificationChannel] = {}
        for channel in channels or []:
            self.register(channel)

    @classmethod
    def logging_defaults(cls) -> "ChannelRegistry":
        return cls(LoggingChannel(channel) for channel in Channel)

    def register(self, channel: NotificationChannel) -> None:
        self._channels[channel.channel] = channel

    def get(self, channel: Channel) -> Optional[NotificationChannel]:
        return self._channels.get(channel)
