"""
Detectors for water-usage anomalies.

Implements explainable rule-based methods:
- Theft: flow ratio against the household baseline
- Leak: sustained flow during night hours (absolute floor)
- Blockage: near-zero flow or a relative pressure drop

Each detector returns a fully populated AnomalyResult candidate, or None when
its rule does not fire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from aquawatch.core.config import DetectorThresholds
from aquawatch.core.exceptions import ConfigurationError

from .schema import AnomalyResult, AnomalyType, Baseline, Reading, Severity


def local_hour(timestamp: datetime, timezone_name: Optional[str] = None) -> int:
    """
    Hour of day in local time.

    Naive timestamps are already local. Aware timestamps are converted to
    ``timezone_name`` when given, otherwise to the host's local zone.
    """
    if timestamp.tzinfo is None:
        return timestamp.hour
    if timezone_name:
        try:
            zone = ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown local timezone: {timezone_name}") from e
        return timestamp.astimezone(zone).hour
    return timestamp.astimezone().hour


def format_fixed(value: float, places: int) -> str:
    """
    Fixed-point text for message values.

    Rounds the exact binary value half away from zero, so 0.25 gives "0.3"
    and 8.25 gives "8.3" where an f-string would give "0.2" and "8.2".
    """
    return str(Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def is_night_hour(hour: int, start_hour: int, end_hour: int) -> bool:
    """Inclusive night window check; handles windows that wrap midnight."""
    if start_hour <= end_hour:
        return start_hour <= hour <= end_hour
    return hour >= start_hour or hour <= end_hour


@dataclass(frozen=True)
class TheftDetector:
    """
    Flow-ratio detector.

    Fires when flow_rate / avg_flow reaches the theft multiplier (inclusive).
    """

    thresholds: DetectorThresholds

    def detect(self, reading: Reading, baseline: Baseline) -> Optional[AnomalyResult]:
        t = self.thresholds
        ratio = reading.flow_rate / baseline.avg_flow
        if ratio < t.theft_flow_multiplier:
            return None

        if ratio >= t.theft_high_ratio:
            severity = Severity.HIGH
        elif ratio >= t.theft_medium_ratio:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        return AnomalyResult(
            household_id=reading.household_id,
            anomaly_type=AnomalyType.THEFT,
            severity=severity,
            confidence=min(t.theft_max_confidence, (ratio - 1) * 100),
            message=(
                f"Unusual spike detected: {format_fixed(reading.flow_rate, 1)} L/min "
                f"({format_fixed(ratio * 100, 0)}% of normal)"
            ),
            timestamp=reading.timestamp,
        )


@dataclass(frozen=True)
class LeakDetector:
    """
    Night-flow detector.

    Uses a fixed absolute floor and ignores the household baseline: any
    continuous flow above the floor at night is suspicious.
    """

    thresholds: DetectorThresholds
    timezone_name: Optional[str] = None

    def detect(self, reading: Reading, baseline: Baseline) -> Optional[AnomalyResult]:
        t = self.thresholds
        hour = local_hour(reading.timestamp, self.timezone_name)
        if not is_night_hour(hour, t.night_start_hour, t.night_end_hour):
            return None

        flow = reading.flow_rate
        if flow <= t.leak_night_flow_threshold:
            return None

        if flow > t.leak_high_flow:
            severity = Severity.HIGH
        elif flow > t.leak_medium_flow:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW

        return AnomalyResult(
            household_id=reading.household_id,
            anomaly_type=AnomalyType.LEAK,
            severity=severity,
            confidence=min(t.leak_max_confidence, flow * t.leak_confidence_per_lpm),
            message=f"Continuous flow during night hours: {format_fixed(flow, 1)} L/min",
            timestamp=reading.timestamp,
        )


@dataclass(frozen=True)
class BlockageDetector:
    """
    Zero-flow / low-pressure detector.

    Both conditions together are high severity; either alone is medium. The
    zero-flow condition drives confidence and message when present.
    """

    thresholds: DetectorThresholds

    def detect(self, reading: Reading, baseline: Baseline) -> Optional[AnomalyResult]:
        t = self.thresholds
        zero_flow = reading.flow_rate <= t.zero_flow_threshold
        low_pressure = reading.pressure < baseline.avg_pressure * t.low_pressure_ratio
        if not (zero_flow or low_pressure):
            return None

        severity = Severity.HIGH if zero_flow and low_pressure else Severity.MEDIUM
        if zero_flow:
            confidence = t.zero_flow_confidence
            message = f"Zero flow detected: {format_fixed(reading.flow_rate, 1)} L/min"
        else:
            confidence = t.low_pressure_confidence
            message = f"Low pressure detected: {format_fixed(reading.pressure, 1)} bar"

        return AnomalyResult(
            household_id=reading.household_id,
            anomaly_type=AnomalyType.BLOCKAGE,
            severity=severity,
            confidence=confidence,
            message=message,
            timestamp=reading.timestamp,
        )
