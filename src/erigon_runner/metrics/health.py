"""Lifecycle state of the supervised child, as reported by /health."""

import threading
from datetime import datetime, timezone
from typing import Any

PHASES = ("idle", "negotiating", "building", "running", "exited", "failed")


class RunHealth:
    """Thread-safe record of where the current run is.

    The supervisor moves it through the phases; the metrics server reads it.
    Only the "failed" phase counts as unhealthy.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.phase = "idle"
        self.pid: int | None = None
        self.returncode: int | None = None
        self.error: str | None = None
        self.changed_at = datetime.now(timezone.utc)

    def update(
        self,
        phase: str,
        pid: int | None = None,
        returncode: int | None = None,
        error: str | None = None,
    ) -> None:
        if phase not in PHASES:
            raise ValueError(f"unknown phase {phase!r}")
        with self._lock:
            self.phase = phase
            self.pid = pid
            self.returncode = returncode
            self.error = error
            self.changed_at = datetime.now(timezone.utc)

    @property
    def healthy(self) -> bool:
        with self._lock:
            return self.phase != "failed"

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "phase": self.phase,
                "pid": self.pid,
                "returncode": self.returncode,
                "error": self.error,
                "since": self.changed_at.isoformat(),
            }


# Shared by the CLI run and the metrics server
RUN_HEALTH = RunHealth()
