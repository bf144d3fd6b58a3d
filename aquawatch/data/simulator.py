"""
Mock sensor data generator.

Stands in for device telemetry during demos and tests. Readings vary around
each household's baseline and occasionally carry a simulated theft, leak or
blockage signature.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from aquawatch.anomaly.baselines import BaselineStore, InMemoryBaselineStore
from aquawatch.anomaly.detectors import is_night_hour, local_hour
from aquawatch.anomaly.schema import Reading
from aquawatch.core.config import DetectorThresholds, SimulatorConfig, config

logger = logging.getLogger(__name__)


class ReadingSimulator:
    """
    Generates plausible readings per household.

    Anomaly mix when one is injected: 40% theft spike, 30% night leak (only
    when the timestamp falls in night hours), 30% blockage.
    """

    def __init__(
        self,
        baseline_store: Optional[BaselineStore] = None,
        settings: Optional[SimulatorConfig] = None,
        thresholds: Optional[DetectorThresholds] = None,
        timezone_name: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.baseline_store = baseline_store or InMemoryBaselineStore.from_config()
        self.settings = settings or config.simulator
        self.thresholds = thresholds or config.anomaly.thresholds
        self.timezone_name = timezone_name if timezone_name is not None else config.local_timezone
        self.rng = rng or random.Random()

    def generate(
        self, household_id: str, count: int = 1, now: Optional[datetime] = None
    ) -> List[Reading]:
        """
        Generate ``count`` readings ending at ``now``, one interval apart.
        """
        if count < 1:
            return []
        now = now or datetime.now(timezone.utc)
        interval = timedelta(seconds=self.settings.interval_seconds)
        base = self.baseline_store.get_baseline(household_id)

        readings = []
        for i in range(count):
            timestamp = now - (count - 1 - i) * interval
            flow = base.avg_flow + (self.rng.random() - 0.5) * self.settings.flow_variation
            pressure = base.avg_pressure + (self.rng.random() - 0.5) * self.settings.pressure_variation

            if self.rng.random() < self.settings.anomaly_probability:
                flow, pressure = self._inject_anomaly(timestamp, flow, pressure, base.avg_flow, base.avg_pressure)

            readings.append(
                Reading(
                    household_id=household_id,
                    flow_rate=max(0.0, flow),
                    pressure=max(0.0, pressure),
                    timestamp=timestamp,
                )
            )
        return readings

    def generate_all(self, count: int = 1, now: Optional[datetime] = None) -> List[Reading]:
        """Generate readings for every configured household."""
        now = now or datetime.now(timezone.utc)
        readings: List[Reading] = []
        for household_id in self.settings.households:
            readings.extend(self.generate(household_id, count, now=now))
        return readings

    def live_snapshot(self, now: Optional[datetime] = None) -> List[Reading]:
        """
        One reading per household around a fleet-wide 40 L/min, 2.5 bar.

        Used by the real-time tick, which does not inject anomalies.
        """
        now = now or datetime.now(timezone.utc)
        return [
            Reading(
                household_id=household_id,
                flow_rate=max(0.0, 40 + (self.rng.random() - 0.5) * 30),
                pressure=max(0.0, 2.5 + (self.rng.random() - 0.5) * 0.8),
                timestamp=now,
            )
            for household_id in self.settings.households
        ]

    def _inject_anomaly(
        self,
        timestamp: datetime,
        flow: float,
        pressure: float,
        avg_flow: float,
        avg_pressure: float,
    ) -> tuple:
        kind = self.rng.random()
        if kind < 0.4:
            flow = avg_flow * (1.5 + self.rng.random() * 0.8)
        elif kind < 0.7:
            hour = local_hour(timestamp, self.timezone_name)
            if is_night_hour(hour, self.thresholds.night_start_hour, self.thresholds.night_end_hour):
                flow = 8 + self.rng.random() * 12
        else:
            flow = self.rng.random() * 2
            pressure = avg_pressure * (0.5 + self.rng.random() * 0.3)
        return flow, pressure
