"""
Pytest configuration and shared fixtures.

Provides classifier instances, reading factories and simulated sensor data for
unit and integration tests.
"""

import random
from datetime import datetime
from typing import Any, Callable, Dict, List

import pandas as pd
import pytest

from aquawatch.anomaly.baselines import InMemoryBaselineStore
from aquawatch.anomaly.engine import AnomalyClassifier
from aquawatch.anomaly.schema import Baseline, Reading
from aquawatch.core.config import AnomalyConfig, DetectorThresholds, SimulatorConfig
from aquawatch.data.simulator import ReadingSimulator

# Naive timestamps are treated as local time, so these are host-independent.
DAYTIME = datetime(2025, 3, 1, 14, 0, 0)
NIGHT = datetime(2025, 3, 1, 2, 0, 0)


@pytest.fixture
def daytime() -> datetime:
    return DAYTIME


@pytest.fixture
def night() -> datetime:
    return NIGHT


@pytest.fixture
def thresholds() -> DetectorThresholds:
    return DetectorThresholds()


@pytest.fixture
def baseline_store() -> InMemoryBaselineStore:
    """
    Fixture providing the stock household baselines (H001-H005) plus the
    45 L/min / 2.5 bar default for unknown households.
    """
    return InMemoryBaselineStore.from_config(AnomalyConfig())


@pytest.fixture
def classifier(baseline_store, thresholds) -> AnomalyClassifier:
    return AnomalyClassifier(baseline_store=baseline_store, thresholds=thresholds, timezone_name=None)


@pytest.fixture
def baseline() -> Baseline:
    return Baseline(avg_flow=45.0, avg_pressure=2.5)


@pytest.fixture
def make_reading() -> Callable[..., Reading]:
    """
    Factory fixture for readings.

    Defaults to a normal daytime reading for H001 (45 L/min, 2.5 bar).
    """

    def _make(
        household_id: str = "H001",
        flow_rate: float = 45.0,
        pressure: float = 2.5,
        timestamp: datetime = DAYTIME,
    ) -> Reading:
        return Reading(
            household_id=household_id,
            flow_rate=flow_rate,
            pressure=pressure,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def raw_readings() -> List[Dict[str, Any]]:
    """
    Fixture providing a mixed batch as it arrives over HTTP.

    Order: normal, theft, normal, blockage.
    """
    ts = DAYTIME.isoformat()
    return [
        {"householdId": "H001", "flowRate": 44.0, "pressure": 2.5, "timestamp": ts},
        {"householdId": "H001", "flowRate": 90.0, "pressure": 2.5, "timestamp": ts},
        {"householdId": "H002", "flowRate": 40.0, "pressure": 2.4, "timestamp": ts},
        {"householdId": "H003", "flowRate": 0.2, "pressure": 2.6, "timestamp": ts},
    ]


@pytest.fixture
def seeded_simulator(baseline_store) -> ReadingSimulator:
    return ReadingSimulator(
        baseline_store,
        settings=SimulatorConfig(),
        thresholds=DetectorThresholds(),
        timezone_name=None,
        rng=random.Random(42),
    )


@pytest.fixture
def simulated_reading_dataframe(seeded_simulator) -> pd.DataFrame:
    """
    Fixture providing an hour of simulated readings for every household as
    a pandas DataFrame indexed by timestamp.
    """
    readings = seeded_simulator.generate_all(count=60, now=DAYTIME)
    df = pd.DataFrame([r.model_dump() for r in readings])
    df["timestamp"] = pd.to_datetime(df["timestamp"])
    df.set_index("timestamp", inplace=True)
    return df


def pytest_configure(config):
    """
    Pytest hook for custom configuration.

    Registers custom markers used throughout tests.
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (deferred CI)"
    )
