"""HTTP endpoint for run metrics and child health.

GET /metrics  Prometheus exposition of the erigon_runner_* counters
GET /health   JSON child phase; 503 once the run has failed
"""

import json
import threading
from collections.abc import Callable
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, make_server

import structlog
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from erigon_runner.metrics.health import RUN_HEALTH, RunHealth

log = structlog.get_logger()

_server_lock = threading.Lock()
_server_thread: threading.Thread | None = None

StartResponse = Callable[[str, list[tuple[str, str]]], Any]
WSGIApp = Callable[[dict[str, Any], StartResponse], list[bytes]]


class _QuietHandler(WSGIRequestHandler):
    """Keeps request lines out of the child's echoed output."""

    def log_message(self, format: str, *args: object) -> None:
        pass


def health_body(health: RunHealth) -> tuple[str, bytes]:
    """Status line and JSON body for the health endpoint."""
    healthy = health.healthy
    body = {"status": "ok" if healthy else "degraded", "child": health.snapshot()}
    status = "200 OK" if healthy else "503 Service Unavailable"
    return status, json.dumps(body).encode()


def make_app(health: RunHealth = RUN_HEALTH) -> WSGIApp:
    """Build the WSGI app bound to a run's health record."""

    def app(environ: dict[str, Any], start_response: StartResponse) -> list[bytes]:
        path = environ.get("PATH_INFO", "/")

        if path == "/metrics":
            status = "200 OK"
            output = generate_latest(REGISTRY)
            headers = [("Content-Type", CONTENT_TYPE_LATEST)]
        elif path == "/health":
            status, output = health_body(health)
            headers = [("Content-Type", "application/json")]
        else:
            status = "404 Not Found"
            output = b"Not Found"
            headers = [("Content-Type", "text/plain")]

        start_response(status, headers)
        return [output]

    return app


def start_metrics_server(
    port: int, host: str = "127.0.0.1", health: RunHealth = RUN_HEALTH
) -> threading.Thread:
    """Serve metrics and health from a daemon thread.

    A second call while the server is up returns the running thread.
    """
    global _server_thread
    with _server_lock:
        if _server_thread is not None and _server_thread.is_alive():
            log.debug("Metrics server already running")
            return _server_thread

        server = make_server(host, port, make_app(health), handler_class=_QuietHandler)

        def serve() -> None:
            log.info("Metrics server listening", host=host, port=port)
            try:
                server.serve_forever()
            except Exception:
                log.exception("Metrics server stopped")

        _server_thread = threading.Thread(target=serve, name="metrics", daemon=True)
        _server_thread.start()
        return _server_thread
