"""
Schema definitions for water-usage anomaly classification.

All classifier inputs and outputs are immutable pydantic models. JSON uses the
camelCase field names of the public API (``householdId``, ``flowRate``...);
snake_case names are accepted on input as well.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AnomalyType(str, Enum):
    """Classification outcome for a single reading."""

    THEFT = "theft"
    LEAK = "leak"
    BLOCKAGE = "blockage"
    NONE = "none"


class Severity(str, Enum):
    """Severity levels for anomalies."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.HIGH: 3}


class WaterModel(BaseModel):
    """Base model: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Reading(WaterModel):
    """
    One sample of sensed state for a household.

    Fields:
    - household_id: opaque non-empty identifier
    - flow_rate: liters/minute, finite and non-negative
    - pressure: bar, finite and non-negative
    - timestamp: when the sample was taken
    """

    household_id: str = Field(min_length=1)
    flow_rate: float = Field(ge=0.0, allow_inf_nan=False)
    pressure: float = Field(ge=0.0, allow_inf_nan=False)
    timestamp: datetime

    @field_validator("flow_rate", "pressure", mode="before")
    @classmethod
    def _require_number(cls, value: Any) -> Any:
        # Numeric strings and booleans are wrong-typed input, not numbers.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number")
        return value


class Baseline(WaterModel):
    """
    Per-household reference statistics.

    Fields:
    - avg_flow: typical flow rate (L/min)
    - avg_pressure: typical pressure (bar)
    """

    avg_flow: float = Field(gt=0.0)
    avg_pressure: float = Field(gt=0.0)


class AnomalyResult(WaterModel):
    """
    Classifier output for one reading.

    ``severity`` is always ``low`` when ``anomaly_type`` is ``none``.
    """

    household_id: str
    anomaly_type: AnomalyType
    severity: Severity
    confidence: float = Field(ge=0.0, le=100.0)
    message: str
    timestamp: datetime

    @property
    def is_anomaly(self) -> bool:
        return self.anomaly_type != AnomalyType.NONE


class BatchClassification(WaterModel):
    """
    Result of classifying an ordered batch of readings.

    Fields:
    - total_readings: number of readings submitted
    - anomalies_detected: number of non-``none`` results, before filtering
    - results: per-reading results in input order (``none`` dropped when filtered)
    """

    total_readings: int = Field(ge=0)
    anomalies_detected: int = Field(ge=0)
    results: List[AnomalyResult]
