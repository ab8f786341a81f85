"""Prometheus metrics for the runner.

Usage:
    from erigon_runner.metrics import start_metrics_server, LINES_PROCESSED

    start_metrics_server(port=9100)
    LINES_PROCESSED.labels(stream="stdout").inc()
"""

from erigon_runner.metrics.runner import (
    ALERT_DECISIONS,
    CHILD_EXITS,
    DISPATCH_FAILURES,
    LINES_PROCESSED,
    PATTERN_MATCHES,
)
from erigon_runner.metrics.health import RUN_HEALTH, RunHealth
from erigon_runner.metrics.server import start_metrics_server

__all__ = [
    "start_metrics_server",
    "RUN_HEALTH",
    "RunHealth",
    "LINES_PROCESSED",
    "PATTERN_MATCHES",
    "ALERT_DECISIONS",
    "DISPATCH_FAILURES",
    "CHILD_EXITS",
]
