"""Prometheus metrics for a supervised run.

All metrics use the 'erigon_runner_' prefix.
"""

from prometheus_client import Counter

LINES_PROCESSED = Counter(
    "erigon_runner_lines_processed_total",
    "Child output lines processed",
    ["stream"],  # stdout, stderr, stdin
)

PATTERN_MATCHES = Counter(
    "erigon_runner_pattern_matches_total",
    "Lines that matched a configured pattern",
    ["pattern"],
)

ALERT_DECISIONS = Counter(
    "erigon_runner_alert_decisions_total",
    "Alert manager decisions",
    ["pattern", "outcome"],  # outcome: sent, suppressed
)

DISPATCH_FAILURES = Counter(
    "erigon_runner_dispatch_failures_total",
    "Alerts that were attempted but not delivered",
)

CHILD_EXITS = Counter(
    "erigon_runner_child_exits_total",
    "Child process exits",
    ["status"],  # ok, error
)
