"""Cooldown and suppression bookkeeping for alerts."""

import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class AlertDecision:
    """Outcome of a match: whether to send, and the suppression count to report."""

    send: bool
    suppressed: int


class AlertManager:
    """Decides whether a matched pattern should alert.

    Each pattern is either idle or cooling down. A match while idle sends an
    alert and reports how many matches were swallowed since the previous one.
    A match while cooling down only bumps the suppression counter.

    All state sits behind one lock so several producers can share a manager.
    """

    def __init__(
        self,
        default_cooldown: timedelta,
        pattern_cooldowns: dict[str, timedelta] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.default_cooldown = default_cooldown
        self.pattern_cooldowns = dict(pattern_cooldowns or {})
        self.clock = clock
        self.last_sent: dict[str, datetime] = {}
        self.suppression_counts: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def cooldown_for(self, pattern: str) -> timedelta:
        """Effective cooldown: the pattern override, else the default."""
        return self.pattern_cooldowns.get(pattern, self.default_cooldown)

    def should_send_alert(self, pattern: str) -> AlertDecision:
        """Record a match for this pattern and decide whether to alert.

        Returns:
            send=True with the suppressions accumulated since the last alert
            (the counter is reset), or send=False with the updated count
        """
        with self._lock:
            now = self.clock()
            last = self.last_sent.get(pattern)

            if last is not None and (now - last) < self.cooldown_for(pattern):
                self.suppression_counts[pattern] += 1
                return AlertDecision(send=False, suppressed=self.suppression_counts[pattern])

            suppressed = self.suppression_counts[pattern]
            # Never move backwards if the clock does
            self.last_sent[pattern] = now if last is None else max(last, now)
            self.suppression_counts[pattern] = 0
            return AlertDecision(send=True, suppressed=suppressed)

    def suppression_count(self, pattern: str) -> int:
        """Current suppression count for a pattern, without touching state."""
        with self._lock:
            return self.suppression_counts.get(pattern, 0)

    def time_until_alert(self, pattern: str) -> timedelta | None:
        """Get time remaining until this pattern can alert again.

        Returns:
            Time remaining, or None if can alert now
        """
        with self._lock:
            last = self.last_sent.get(pattern)
            if last is None:
                return None

            elapsed = self.clock() - last
            cooldown = self.cooldown_for(pattern)
            if elapsed >= cooldown:
                return None

            return cooldown - elapsed
