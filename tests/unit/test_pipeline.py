"""
Unit tests for the real-time monitoring pipeline.
"""

import threading
from datetime import datetime, timezone

from aquawatch.core.config import AlertConfig
from aquawatch.core.exceptions import PersistenceError
from backend.alerts.config import default_alert_rules
from backend.alerts.service import AlertService
from backend.pipeline import MonitoringPipeline
from backend.storage.memory import AlertRepository, AlertRuleRepository

NOW = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)


class ReadOnlyAlertRepository(AlertRepository):
    def add(self, record):
        raise PersistenceError("read-only replica")


def _pipeline(classifier, seeded_simulator, alerts=None):
    service = AlertService(
        alerts if alerts is not None else AlertRepository(),
        AlertRuleRepository(default_alert_rules()),
        settings=AlertConfig(persist_retries=2),
        clock=lambda: NOW,
        sleep=lambda _: None,
    )
    return MonitoringPipeline(classifier, service, seeded_simulator, clock=lambda: NOW)


def test_process_raises_alert_per_anomaly(classifier, seeded_simulator, make_reading):
    pipeline = _pipeline(classifier, seeded_simulator)
    report = pipeline.process(
        [make_reading(flow_rate=44.0), make_reading(flow_rate=90.0), make_reading(flow_rate=0.0, pressure=1.0)]
    )

    assert report.processed == 3
    assert report.anomalies_detected == 2
    assert report.alerts_created == 2
    assert [a.anomaly_type.value for a in report.alerts] == ["theft", "blockage"]
    assert len(pipeline.alert_service.list_alerts()) == 2


def test_alert_failures_degrade_status(classifier, seeded_simulator, make_reading):
    pipeline = _pipeline(classifier, seeded_simulator, alerts=ReadOnlyAlertRepository())
    report = pipeline.process([make_reading(flow_rate=90.0)])

    assert report.anomalies_detected == 1
    assert report.alerts_created == 0

    status = pipeline.status()
    assert status["status"] == "degraded"
    assert status["components"]["alertSystem"] == "degraded"
    assert status["metrics"]["alertFailures"] == 1


def test_status_metrics(classifier, seeded_simulator, make_reading):
    pipeline = _pipeline(classifier, seeded_simulator)
    assert pipeline.status()["metrics"]["lastProcessedAt"] is None

    pipeline.process([make_reading(), make_reading()])
    pipeline.process([make_reading(flow_rate=90.0)])

    status = pipeline.status()
    assert status["status"] == "operational"
    metrics = status["metrics"]
    assert metrics["batchesProcessed"] == 2
    assert metrics["readingsProcessed"] == 3
    assert metrics["anomaliesDetected"] == 1
    assert metrics["alertsCreated"] == 1
    assert metrics["lastProcessedAt"] == NOW.isoformat()


def test_tick_payload(classifier, seeded_simulator):
    update = _pipeline(classifier, seeded_simulator).tick()

    assert update["type"] == "sensor_update"
    assert len(update["sensorData"]) == 5
    assert set(update["sensorData"][0]) == {"householdId", "flowRate", "pressure", "timestamp"}
    assert len(update["alerts"]) == len(update["anomalies"])


def test_run_forever_stops_on_event(classifier, seeded_simulator):
    pipeline = _pipeline(classifier, seeded_simulator)
    stop = threading.Event()
    updates = []

    def _collect(update):
        updates.append(update)
        if len(updates) == 3:
            stop.set()

    pipeline.run_forever(stop, interval_seconds=0.0, on_update=_collect)

    assert len(updates) == 3
    assert pipeline.status()["metrics"]["batchesProcessed"] == 3
