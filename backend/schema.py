"""
Shared base for backend records and request bodies.

Records serialize with the camelCase names used by the dashboard API and
accept snake_case on input.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Channel(str, Enum):
    """Notification transports."""

    EMAIL = "email"
    SMS = "sms"
    WHATSAPP = "whatsapp"


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
