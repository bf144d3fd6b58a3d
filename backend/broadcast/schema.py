"""
Schema for recipients and broadcast messages.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from backend.schema import ApiModel, Channel


class RecipientGroup(str, Enum):
    OFFICIALS = "officials"
    RESIDENTS = "residents"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"


class TargetGroup(str, Enum):
    ALL = "all"
    OFFICIALS = "officials"
    RESIDENTS = "residents"
    MAINTENANCE = "maintenance"
    EMERGENCY = "emergency"


class BroadcastPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class Recipient(ApiModel):
    """
    Person or team that receives notifications.

    Fields:
    - email/phone/whatsapp: contact per channel; absent means not reachable there
    - groups: distribution lists the recipient belongs to
    - active: inactive recipients never receive broadcasts
    """

    id: str
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    groups: List[RecipientGroup]
    active: bool = True
    created_at: datetime
    last_notified: Optional[datetime] = None

    def address_for(self, channel: Channel) -> Optional[str]:
        if channel == Channel.EMAIL:
            return self.email
        if channel == Channel.SMS:
            return self.phone
        return self.whatsapp


class RecipientCreate(ApiModel):
    """Request body for a new recipient; needs at least one contact method."""

    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    groups: List[RecipientGroup] = Field(min_length=1)
    active: bool = True

    @model_validator(mode="after")
    def _require_contact(self) -> "RecipientCreate":
        if not (self.email or self.phone or self.whatsapp):
            raise ValueError("At least one contact method (email, phone, whatsapp) is required")
        return self


class DeliveryStatus(ApiModel):
    sent: int = 0
    delivered: int = 0
    failed: int = 0


class BroadcastMessage(ApiModel):
    """
    Record of a message sent to one or more recipient groups.

    ``delivery_status`` counts individual deliveries (recipient x channel).
    """

    id: str
    title: str
    message: str
    priority: BroadcastPriority = BroadcastPriority.MEDIUM
    channels: List[Channel]
    target_groups: List[TargetGroup]
    sent_by: str
    timestamp: datetime
    recipient_count: int = Field(0, ge=0)
    delivery_status: DeliveryStatus = Field(default_factory=DeliveryStatus)


class BroadcastRequest(ApiModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    priority: BroadcastPriority = BroadcastPriority.MEDIUM
    channels: List[Channel] = Field(min_length=1)
    target_groups: List[TargetGroup] = Field(min_length=1)
    sent_by: str = "system@kandavara.gov.in"
