"""
Backend HTTP server for the village water monitoring dashboard.

Thin transport over ``backend.api.ApiRoutes``; no web framework needed.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

from dotenv import load_dotenv

from aquawatch.core.config import config
from aquawatch.core.logging_config import setup_logging
from backend.api import ApiRoutes

load_dotenv()

logger = logging.getLogger("backend")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

ROUTES: Optional[ApiRoutes] = None
STREAM_INTERVAL_SECONDS = 5.0


def _routes() -> ApiRoutes:
    global ROUTES
    if ROUTES is None:
        ROUTES = ApiRoutes.create_default()
    return ROUTES


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _flatten_query(raw: str) -> Dict[str, str]:
    return {key: values[-1] for key, values in parse_qs(raw, keep_blank_values=True).items()}


class BackendHandler(BaseHTTPRequestHandler):
    server_version = "AquaWatch/1.0"

    def _cors_headers(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PATCH, OPTIONS")

    def _send_json(self, status: int, payload: Dict[str, object]) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self._cors_headers()
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json(self) -> Optional[Dict[str, object]]:
        length = int(self.headers.get("Content-Length", "0"))
        if length <= 0:
            return None
        data = self.rfile.read(length)
        try:
            payload = json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return payload if isinstance(payload, dict) else None

    def _dispatch(self, method: str, with_body: bool) -> None:
        url = urlsplit(self.path)
        query = _flatten_query(url.query)

        if method == "GET" and url.path == "/api/realtime" and _parse_bool(query.get("stream"), False):
            self._stream_updates()
            return

        body = None
        if with_body:
            body = self._read_json()
            if body is None:
                self._send_json(400, {"error": "Request body must be a JSON object"})
                return

        status, payload = _routes().dispatch(method, url.path, query, body)
        self._send_json(status, payload)

    def _stream_updates(self) -> None:
        """Server-Sent Events: one ``sensor_update`` per tick until the client leaves."""
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self._cors_headers()
        self.end_headers()

        pipeline = _routes().pipeline
        stop = threading.Event()

        def _write(update: Dict[str, object]) -> None:
            try:
                self.wfile.write(f"data: {json.dumps(update)}\n\n".encode("utf-8"))
                self.wfile.flush()
            except (BrokenPipeError, ConnectionResetError):
                stop.set()

        try:
            _write({"type": "connected", "message": "Real-time monitoring started"})
            pipeline.run_forever(stop, STREAM_INTERVAL_SECONDS, on_update=_write)
        finally:
            logger.info("Real-time stream closed for %s", self.client_address[0])

    def do_GET(self) -> None:
        self._dispatch("GET", with_body=False)

    def do_POST(self) -> None:
        self._dispatch("POST", with_body=True)

    def do_PATCH(self) -> None:
        self._dispatch("PATCH", with_body=True)

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._cors_headers()
        self.end_headers()


def run(host: str, port: int, simulate: bool = False) -> None:
    setup_logging()
    setup_logging("backend")
    routes = _routes()
    logger.info("Starting backend server on %s:%s", host, port)
    logger.info(
        "Monitoring %d households (timezone=%s)",
        len(config.anomaly.household_baselines),
        config.local_timezone or "<host>",
    )

    stop = threading.Event()
    if simulate:
        worker = threading.Thread(
            target=routes.pipeline.run_forever,
            args=(stop, config.simulator.interval_seconds),
            name="simulated-monitoring",
            daemon=True,
        )
        worker.start()

    server = ThreadingHTTPServer((host, port), BackendHandler)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        stop.set()
        server.server_close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Village water monitoring backend server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument(
        "--simulate",
        action="store_true",
        default=_parse_bool(os.getenv("AQUAWATCH_SIMULATE"), False),
        help="Run the simulated sensor loop in the background",
    )
    args = parser.parse_args()

    run(args.host, args.port, simulate=args.simulate)


if __name__ == "__main__":
    main()
