"""
HTTP route handlers.

Each handler takes the parsed query string and JSON body and returns
``(status, payload)``. The socket server in ``backend.main`` only does
transport; everything testable lives here.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from aquawatch.anomaly.baselines import InMemoryBaselineStore
from aquawatch.anomaly.engine import AnomalyClassifier
from aquawatch.core.config import Config, config
from aquawatch.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    PersistenceError,
    WaterMonitorError,
)
from aquawatch.data.simulator import ReadingSimulator
from aquawatch.data.validation import parse_readings
from backend.alerts.config import default_alert_rules, demo_alerts
from backend.alerts.service import AlertService
from backend.broadcast.config import demo_broadcasts, demo_recipients
from backend.broadcast.service import BroadcastService, RecipientService
from backend.notifications.dispatcher import NotificationDispatcher
from backend.pipeline import MonitoringPipeline
from backend.storage.memory import (
    AlertRepository,
    AlertRuleRepository,
    BroadcastRepository,
    RecipientRepository,
)

logger = logging.getLogger(__name__)

Query = Dict[str, str]
Response = Tuple[int, Dict[str, Any]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int_param(query: Query, name: str, default: int) -> int:
    raw = query.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidInputError(f"{name} must be an integer", field=name) from e


def _bool_param(query: Query, name: str) -> Optional[bool]:
    raw = query.get(name)
    if raw is None:
        return None
    return raw.strip().lower() == "true"


def _require_list(body: Optional[Dict[str, Any]], key: str) -> List[Any]:
    value = (body or {}).get(key)
    if not isinstance(value, list):
        raise InvalidInputError(f"Invalid input: {key} array required", field=key)
    return value


def _error_payload(exc: WaterMonitorError) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": str(exc)}
    if isinstance(exc, InvalidInputError):
        if exc.index is not None:
            payload["index"] = exc.index
        if exc.household_id is not None:
            payload["householdId"] = exc.household_id
        if exc.field is not None:
            payload["field"] = exc.field
    return payload


@dataclass
class _Route:
    method: str
    pattern: Pattern[str]
    handler: Callable[..., Response]


class ApiRoutes:
    """
    Route table for the dashboard API.

    Services are injected so tests can supply fakes; ``create_default``
    wires the in-memory stores with demo data.
    """

    def __init__(
        self,
        classifier: AnomalyClassifier,
        alert_service: AlertService,
        recipient_service: RecipientService,
        broadcast_service: BroadcastService,
        pipeline: MonitoringPipeline,
        simulator: ReadingSimulator,
        settings: Optional[Config] = None,
    ) -> None:
        self.classifier = classifier
        self.alert_service = alert_service
        self.recipient_service = recipient_service
        self.broadcast_service = broadcast_service
        self.pipeline = pipeline
        self.simulator = simulator
        self.settings = settings or config
        self._routes = [
            _Route("GET", re.compile(r"^/health$"), self.health),
            _Route("GET", re.compile(r"^/api/anomaly-detection$"), self.anomaly_docs),
            _Route("POST", re.compile(r"^/api/anomaly-detection$"), self.detect_anomalies),
            _Route("GET", re.compile(r"^/api/water-data$"), self.get_water_data),
            _Route("POST", re.compile(r"^/api/water-data$"), self.post_water_data),
            _Route("GET", re.compile(r"^/api/alerts$"), self.list_alerts),
            _Route("POST", re.compile(r"^/api/alerts$"), self.create_alert),
            _Route("GET", re.compile(r"^/api/alerts/(?P<alert_id>[^/]+)$"), self.get_alert),
            _Route("PATCH", re.compile(r"^/api/alerts/(?P<alert_id>[^/]+)$"), self.update_alert),
            _Route("GET", re.compile(r"^/api/alert-rules$"), self.list_rules),
            _Route("POST", re.compile(r"^/api/alert-rules$"), self.create_rule),
            _Route("GET", re.compile(r"^/api/recipients$"), self.list_recipients),
            _Route("POST", re.compile(r"^/api/recipients$"), self.add_recipient),
            _Route("GET", re.compile(r"^/api/broadcast$"), self.list_broadcasts),
            _Route("POST", re.compile(r"^/api/broadcast$"), self.send_broadcast),
            _Route("GET", re.compile(r"^/api/realtime$"), self.realtime_docs),
            _Route("POST", re.compile(r"^/api/realtime$"), self.process_realtime),
            _Route("GET", re.compile(r"^/api/realtime/status$"), self.realtime_status),
        ]

    @classmethod
    def create_default(cls, settings: Optional[Config] = None) -> "ApiRoutes":
        settings = settings or config
        baselines = InMemoryBaselineStore.from_config(settings.anomaly)
        classifier = AnomalyClassifier(
            baseline_store=baselines,
            thresholds=settings.anomaly.thresholds,
            timezone_name=settings.local_timezone,
        )
        dispatcher = NotificationDispatcher()
        recipients = RecipientRepository(demo_recipients())
        alert_service = AlertService(
            AlertRepository(demo_alerts()),
            AlertRuleRepository(default_alert_rules()),
            dispatcher=dispatcher,
            settings=settings.alerts,
        )
        simulator = ReadingSimulator(
            baselines,
            settings=settings.simulator,
            thresholds=settings.anomaly.thresholds,
            timezone_name=settings.local_timezone,
        )
        return cls(
            classifier=classifier,
            alert_service=alert_service,
            recipient_service=RecipientService(recipients, default_limit=settings.alerts.default_limit),
            broadcast_service=BroadcastService(
                BroadcastRepository(demo_broadcasts()),
                recipients,
                dispatcher,
                settings=settings.alerts,
            ),
            pipeline=MonitoringPipeline(classifier, alert_service, simulator),
            simulator=simulator,
            settings=settings,
        )

    def dispatch(
        self,
        method: str,
        path: str,
        query: Optional[Query] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Response:
        """
        Route a request and map domain errors to HTTP status codes.
        """
        query = query or {}
        path_matched = False
        for route in self._routes:
            match = route.pattern.match(path)
            if match is None:
                continue
            path_matched = True
            if route.method != method:
                continue
            try:
                return route.handler(query, body, **match.groupdict())
            except InvalidInputError as exc:
                logger.warning("%s %s rejected: %s", method, path, exc)
                return 400, _error_payload(exc)
            except NotFoundError as exc:
                return 404, _error_payload(exc)
            except PersistenceError as exc:
                logger.error("%s %s storage failure: %s", method, path, exc)
                return 503, _error_payload(exc)
            except WaterMonitorError as exc:
                logger.exception("%s %s failed", method, path)
                return 500, _error_payload(exc)

        if path_matched:
            return 405, {"error": f"Method {method} not allowed"}
        return 404, {"error": "Not found"}

    # Health and classification

    def health(self, query: Query, body: Any) -> Response:
        return 200, {"status": "ok"}

    def anomaly_docs(self, query: Query, body: Any) -> Response:
        t = self.settings.anomaly.thresholds
        d = self.settings.anomaly.durations
        return 200, {
            "name": "Water Theft Detection API",
            "version": "1.0.0",
            "description": "Anomaly detection for water usage monitoring",
            "endpoints": {
                "POST /api/anomaly-detection": {
                    "description": "Analyze water readings for anomalies",
                    "parameters": {
                        "readings": "Array of water reading objects",
                        "anomaliesOnly": "Boolean - return only anomalies (optional)",
                    },
                },
            },
            "thresholds": {
                "theft": {"flowMultiplier": t.theft_flow_multiplier, "minDuration": d.theft_ms},
                "leak": {"nightFlowThreshold": t.leak_night_flow_threshold, "minDuration": d.leak_ms},
                "blockage": {"zeroFlowThreshold": t.zero_flow_threshold, "minDuration": d.blockage_ms},
            },
        }

    def detect_anomalies(self, query: Query, body: Any) -> Response:
        readings = parse_readings(_require_list(body, "readings"))
        anomalies_only = body.get("anomaliesOnly") is True
        batch = self.classifier.classify_batch(readings, anomalies_only=anomalies_only)
        return 200, {
            "success": True,
            "totalReadings": batch.total_readings,
            "anomaliesDetected": batch.anomalies_detected,
            "results": [r.to_api() for r in batch.results],
            "timestamp": _now_iso(),
        }

    # Sensor data

    def get_water_data(self, query: Query, body: Any) -> Response:
        count = _int_param(query, "count", 1)
        if count < 1:
            raise InvalidInputError("count must be at least 1", field="count")

        if _bool_param(query, "all"):
            households = self.settings.simulator.households
            data = self.simulator.generate_all(count)
            return 200, {
                "success": True,
                "totalReadings": len(data),
                "households": len(households),
                "data": [r.to_api() for r in data],
                "timestamp": _now_iso(),
            }

        household_id = query.get("householdId")
        if not household_id:
            raise InvalidInputError("householdId parameter required", field="householdId")

        data = self.simulator.generate(household_id, count)
        return 200, {
            "success": True,
            "householdId": household_id,
            "readings": len(data),
            "data": [r.to_api() for r in data],
            "timestamp": _now_iso(),
        }

    def post_water_data(self, query: Query, body: Any) -> Response:
        readings = parse_readings(_require_list(body, "readings"))
        logger.info("Received %d sensor readings", len(readings))
        return 200, {
            "success": True,
            "message": "Sensor data received and processed",
            "readingsProcessed": len(readings),
            "timestamp": _now_iso(),
        }

    # Alerts

    def list_alerts(self, query: Query, body: Any) -> Response:
        limit = _int_param(query, "limit", self.settings.alerts.default_limit)
        status = query.get("status")
        household_id = query.get("householdId")
        severity = query.get("severity")
        alerts = self.alert_service.list_alerts(status, household_id, severity, limit)
        return 200, {
            "success": True,
            "alerts": [a.to_api() for a in alerts],
            "total": len(alerts),
            "filters": {"status": status, "householdId": household_id, "severity": severity, "limit": limit},
        }

    def create_alert(self, query: Query, body: Any) -> Response:
        body = body or {}
        missing = [k for k in ("householdId", "anomalyType", "severity", "message") if not body.get(k)]
        if missing:
            raise InvalidInputError(
                "Missing required fields: householdId, anomalyType, severity, message",
                field=missing[0],
            )
        alert = self.alert_service.create_alert(
            household_id=body["householdId"],
            anomaly_type=body["anomalyType"],
            severity=body["severity"],
            message=body["message"],
        )
        payload = alert.to_api()
        return 200, {"success": True, "alert": payload, "notificationsSent": payload["notificationsSent"]}

    def get_alert(self, query: Query, body: Any, alert_id: str) -> Response:
        return 200, {"success": True, "alert": self.alert_service.get_alert(alert_id).to_api()}

    def update_alert(self, query: Query, body: Any, alert_id: str) -> Response:
        body = body or {}
        if not body.get("status"):
            # Nothing to change; echo the current record.
            return self.get_alert(query, body, alert_id)
        alert = self.alert_service.update_status(alert_id, body["status"], body.get("acknowledgedBy"))
        return 200, {"success": True, "alert": alert.to_api()}

    def list_rules(self, query: Query, body: Any) -> Response:
        rules = self.alert_service.list_rules()
        return 200, {"success": True, "rules": [r.to_api() for r in rules], "total": len(rules)}

    def create_rule(self, query: Query, body: Any) -> Response:
        body = body or {}
        if not body.get("name") or not body.get("anomalyType"):
            raise InvalidInputError("Missing required fields: name, anomalyType")
        rule = self.alert_service.create_rule(body)
        return 200, {"success": True, "rule": rule.to_api()}

    # Recipients and broadcasts

    def list_recipients(self, query: Query, body: Any) -> Response:
        group = query.get("group")
        active = _bool_param(query, "active")
        limit = _int_param(query, "limit", self.recipient_service.default_limit)
        recipients = self.recipient_service.list_recipients(group, active, limit)
        return 200, {
            "success": True,
            "recipients": [r.to_api() for r in recipients],
            "total": len(recipients),
            "groupStats": self.recipient_service.group_stats(),
            "filters": {"group": group, "active": query.get("active"), "limit": limit},
        }

    def add_recipient(self, query: Query, body: Any) -> Response:
        recipient = self.recipient_service.add_recipient(body or {})
        return 200, {"success": True, "recipient": recipient.to_api()}

    def list_broadcasts(self, query: Query, body: Any) -> Response:
        limit = _int_param(query, "limit", 20)
        broadcasts, total = self.broadcast_service.list_broadcasts(limit)
        return 200, {"success": True, "broadcasts": [b.to_api() for b in broadcasts], "total": total}

    def send_broadcast(self, query: Query, body: Any) -> Response:
        broadcast, recipients = self.broadcast_service.send_broadcast(body or {})
        payload = broadcast.to_api()
        return 200, {
            "success": True,
            "broadcast": payload,
            "recipients": [
                {"id": r.id, "name": r.name, "groups": [g.value for g in r.groups]} for r in recipients
            ],
            "deliveryStatus": payload["deliveryStatus"],
        }

    # Real-time

    def realtime_docs(self, query: Query, body: Any) -> Response:
        return 200, {
            "message": "Real-time processing endpoint",
            "endpoints": {
                "GET /api/realtime?stream=true": "Server-Sent Events stream for real-time updates",
                "POST /api/realtime": "Process batch sensor data",
                "GET /api/realtime/status": "Get processing system status",
            },
        }

    def process_realtime(self, query: Query, body: Any) -> Response:
        readings = parse_readings(_require_list(body, "sensorData"))
        report = self.pipeline.process(readings)
        return 200, {
            "success": True,
            "processed": report.processed,
            "anomaliesDetected": report.anomalies_detected,
            "alertsCreated": report.alerts_created,
            "results": {
                "anomalies": [a.to_api() for a in report.anomalies],
                "alerts": [a.to_api() for a in report.alerts],
            },
            "timestamp": report.timestamp.isoformat(),
        }

    def realtime_status(self, query: Query, body: Any) -> Response:
        return 200, self.pipeline.status()
