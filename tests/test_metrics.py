"""Tests for the metrics endpoint."""

import json

from erigon_runner.metrics import LINES_PROCESSED, RunHealth
from erigon_runner.metrics.server import make_app


def call(path: str, health: RunHealth | None = None) -> tuple[str, dict, bytes]:
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    app = make_app(health or RunHealth())
    body = b"".join(app({"PATH_INFO": path}, start_response))
    return captured["status"], captured["headers"], body


def test_metrics_endpoint() -> None:
    LINES_PROCESSED.labels(stream="stdout").inc()
    status, _, body = call("/metrics")
    assert status == "200 OK"
    assert b"erigon_runner_lines_processed_total" in body


def test_health_before_start() -> None:
    status, headers, body = call("/health")
    assert status == "200 OK"
    assert headers["Content-Type"] == "application/json"
    data = json.loads(body)
    assert data["status"] == "ok"
    assert data["child"]["phase"] == "idle"


def test_health_reports_running_child() -> None:
    health = RunHealth()
    health.update("running", pid=4242)

    status, _, body = call("/health", health)

    assert status == "200 OK"
    child = json.loads(body)["child"]
    assert child["phase"] == "running"
    assert child["pid"] == 4242
    assert child["returncode"] is None


def test_health_degraded_after_failure() -> None:
    health = RunHealth()
    health.update("failed", returncode=2, error="child exited with status 2")

    status, _, body = call("/health", health)

    assert status == "503 Service Unavailable"
    data = json.loads(body)
    assert data["status"] == "degraded"
    assert data["child"]["returncode"] == 2
    assert data["child"]["error"] == "child exited with status 2"


def test_unknown_path() -> None:
    status, _, _ = call("/nope")
    assert status == "404 Not Found"
