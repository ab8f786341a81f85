"""Pattern classifier for child log lines."""

import re
from dataclasses import dataclass
from datetime import timedelta

# Stands in for "never alert again" when a pattern's timeout is 0
NEVER_COOLDOWN = timedelta(days=365 * 100)


@dataclass(frozen=True)
class PatternRule:
    """A compiled pattern with an optional cooldown override."""

    regex: re.Pattern
    cooldown: timedelta | None = None  # None = use the default cooldown

    @property
    def key(self) -> str:
        """Identity used for alert deduplication."""
        return self.regex.pattern

    @classmethod
    def from_config(cls, pattern: str, timeout_minutes: int | None) -> "PatternRule":
        """Build a rule from a configured pattern and timeout.

        A timeout of 0 minutes means the pattern alerts once and then never again.
        """
        if timeout_minutes is None:
            cooldown = None
        elif timeout_minutes == 0:
            cooldown = NEVER_COOLDOWN
        else:
            cooldown = timedelta(minutes=timeout_minutes)
        return cls(regex=re.compile(pattern), cooldown=cooldown)


def classify(log_line: str, rules: list[PatternRule]) -> PatternRule | None:
    """Return the first rule whose pattern occurs in the line.

    Uses re.search, so patterns match anywhere unless they anchor themselves.

    Args:
        log_line: The log line to classify
        rules: Rules in configured order

    Returns:
        The earliest matching rule, or None if nothing matches
    """
    for rule in rules:
        if rule.regex.search(log_line):
            return rule

    return None
