"""
Integration tests for the HTTP API.

Exercises the route table with the default in-memory wiring, and one round
trip through the real socket server.
"""

import json
import threading
import urllib.request
from http.server import ThreadingHTTPServer

import pytest

from backend import main as server_main
from backend.api import ApiRoutes

pytestmark = pytest.mark.integration


@pytest.fixture
def api():
    return ApiRoutes.create_default()


class TestAnomalyDetection:
    def test_docs_report_thresholds(self, api):
        status, payload = api.dispatch("GET", "/api/anomaly-detection")
        assert status == 200
        assert payload["thresholds"]["theft"] == {"flowMultiplier": 1.5, "minDuration": 300000}
        assert payload["thresholds"]["leak"]["nightFlowThreshold"] == 5.0
        assert payload["thresholds"]["blockage"]["minDuration"] == 7200000

    def test_classifies_batch(self, api, raw_readings):
        status, payload = api.dispatch("POST", "/api/anomaly-detection", body={"readings": raw_readings})

        assert status == 200
        assert payload["success"] is True
        assert payload["totalReadings"] == 4
        assert payload["anomaliesDetected"] == 2
        assert [r["anomalyType"] for r in payload["results"]] == ["none", "theft", "none", "blockage"]
        assert payload["results"][1]["householdId"] == "H001"

    def test_anomalies_only(self, api, raw_readings):
        _, payload = api.dispatch(
            "POST", "/api/anomaly-detection", body={"readings": raw_readings, "anomaliesOnly": True}
        )
        assert payload["anomaliesDetected"] == 2
        assert [r["anomalyType"] for r in payload["results"]] == ["theft", "blockage"]

    def test_bad_record_is_identified(self, api, raw_readings):
        raw_readings[2]["flowRate"] = "forty"
        status, payload = api.dispatch("POST", "/api/anomaly-detection", body={"readings": raw_readings})

        assert status == 400
        assert payload["index"] == 2
        assert payload["householdId"] == "H002"

    def test_infinite_flow_is_rejected(self, api, raw_readings):
        raw_readings[1]["flowRate"] = float("inf")
        status, payload = api.dispatch("POST", "/api/anomaly-detection", body={"readings": raw_readings})

        assert status == 400
        assert payload["index"] == 1
        assert payload["householdId"] == "H001"

    def test_missing_readings(self, api):
        status, payload = api.dispatch("POST", "/api/anomaly-detection", body={"data": []})
        assert status == 400
        assert "readings" in payload["error"]


class TestWaterData:
    def test_single_household(self, api):
        status, payload = api.dispatch("GET", "/api/water-data", {"householdId": "H002", "count": "4"})
        assert status == 200
        assert payload["readings"] == 4
        assert all(r["householdId"] == "H002" for r in payload["data"])

    def test_all_households(self, api):
        _, payload = api.dispatch("GET", "/api/water-data", {"all": "true", "count": "2"})
        assert payload["totalReadings"] == 10
        assert payload["households"] == 5

    def test_household_required(self, api):
        status, _ = api.dispatch("GET", "/api/water-data")
        assert status == 400
        status, _ = api.dispatch("GET", "/api/water-data", {"householdId": "H001", "count": "many"})
        assert status == 400

    def test_post_validates(self, api, raw_readings):
        status, payload = api.dispatch("POST", "/api/water-data", body={"readings": raw_readings})
        assert status == 200
        assert payload["readingsProcessed"] == 4


class TestAlerts:
    def test_list_and_filter(self, api):
        _, payload = api.dispatch("GET", "/api/alerts")
        assert [a["id"] for a in payload["alerts"]] == ["ALT001", "ALT002", "ALT003"]

        _, payload = api.dispatch("GET", "/api/alerts", {"status": "active"})
        assert payload["total"] == 1

    def test_create_get_and_acknowledge(self, api):
        status, payload = api.dispatch(
            "POST",
            "/api/alerts",
            body={"householdId": "H004", "anomalyType": "blockage", "severity": "high", "message": "Zero flow"},
        )
        assert status == 200
        alert_id = payload["alert"]["id"]
        assert payload["notificationsSent"] == ["email", "sms", "whatsapp"]

        status, payload = api.dispatch("GET", f"/api/alerts/{alert_id}")
        assert payload["alert"]["status"] == "active"

        status, payload = api.dispatch(
            "PATCH", f"/api/alerts/{alert_id}", body={"status": "acknowledged", "acknowledgedBy": "ops"}
        )
        assert status == 200
        assert payload["alert"]["acknowledgedBy"] == "ops"

    def test_errors(self, api):
        status, _ = api.dispatch("POST", "/api/alerts", body={"householdId": "H001"})
        assert status == 400
        status, _ = api.dispatch("GET", "/api/alerts/ALT404")
        assert status == 404
        status, _ = api.dispatch("PATCH", "/api/alerts/ALT001", body={"status": "closed"})
        assert status == 400

    def test_rules(self, api):
        _, payload = api.dispatch("GET", "/api/alert-rules")
        assert payload["total"] == 3

        status, payload = api.dispatch(
            "POST", "/api/alert-rules", body={"name": "Pressure watch", "anomalyType": "blockage"}
        )
        assert status == 200
        assert payload["rule"]["enabled"] is True


class TestRecipientsAndBroadcast:
    def test_recipients(self, api):
        _, payload = api.dispatch("GET", "/api/recipients", {"active": "true"})
        assert payload["total"] == 6
        assert payload["groupStats"]["total"] == 6

        status, payload = api.dispatch(
            "POST", "/api/recipients", body={"name": "Tank Operator", "phone": "+91-9000000001", "groups": ["maintenance"]}
        )
        assert status == 200
        assert payload["recipient"]["groups"] == ["maintenance"]

    def test_broadcast(self, api):
        status, payload = api.dispatch(
            "POST",
            "/api/broadcast",
            body={"title": "Maintenance", "message": "Valve swap", "channels": ["email"], "targetGroups": ["maintenance"]},
        )
        assert status == 200
        assert payload["deliveryStatus"] == {"sent": 2, "delivered": 2, "failed": 0}
        assert {r["id"] for r in payload["recipients"]} == {"R002", "R003"}

        _, payload = api.dispatch("GET", "/api/broadcast")
        assert payload["total"] == 2


class TestRealtime:
    def test_process_and_status(self, api, raw_readings):
        status, payload = api.dispatch("POST", "/api/realtime", body={"sensorData": raw_readings})
        assert status == 200
        assert payload["processed"] == 4
        assert payload["alertsCreated"] == 2
        assert len(payload["results"]["alerts"]) == 2

        _, status_payload = api.dispatch("GET", "/api/realtime/status")
        assert status_payload["status"] == "operational"
        assert status_payload["metrics"]["readingsProcessed"] == 4

    def test_docs(self, api):
        status, payload = api.dispatch("GET", "/api/realtime")
        assert status == 200
        assert "POST /api/realtime" in payload["endpoints"]


def test_unknown_route_and_method(api):
    assert api.dispatch("GET", "/api/nothing")[0] == 404
    assert api.dispatch("DELETE", "/api/alerts")[0] == 405


def test_socket_round_trip(monkeypatch, raw_readings):
    monkeypatch.setattr(server_main, "ROUTES", ApiRoutes.create_default())
    server = ThreadingHTTPServer(("127.0.0.1", 0), server_main.BackendHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base = f"http://127.0.0.1:{server.server_address[1]}"

    try:
        with urllib.request.urlopen(f"{base}/health") as resp:
            assert json.loads(resp.read()) == {"status": "ok"}

        request = urllib.request.Request(
            f"{base}/api/anomaly-detection",
            data=json.dumps({"readings": raw_readings}).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with urllib.request.urlopen(request) as resp:
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
            assert json.loads(resp.read())["anomaliesDetected"] == 2
    finally:
        server.shutdown()
        server.server_close()
