"""Per-line pipeline: log, classify, decide, dispatch."""

from collections.abc import Callable, Iterable

import structlog

from erigon_runner.metrics import (
    ALERT_DECISIONS,
    DISPATCH_FAILURES,
    LINES_PROCESSED,
    PATTERN_MATCHES,
)

from .alert_manager import AlertManager
from .classifier import PatternRule, classify
from .line_log import LineLogger
from .webhook import WebhookClient

log = structlog.get_logger()


class LogAlerter:
    """Runs every output line through the alert pipeline.

    Lines are handled one at a time; a webhook call blocks the next line.
    """

    def __init__(
        self,
        rules: list[PatternRule],
        alert_manager: AlertManager,
        webhook: WebhookClient,
        line_logger: LineLogger | None = None,
        msg_prefix: str = "",
        echo: Callable[[str], None] | None = None,
    ):
        self.rules = rules
        self.alert_manager = alert_manager
        self.webhook = webhook
        self.line_logger = line_logger
        self.msg_prefix = msg_prefix
        self.echo = echo

    def process_line(self, line: str, stream: str = "stdout") -> bool:
        """Handle one line.

        Returns:
            True if an alert was sent (delivered or not), False otherwise
        """
        LINES_PROCESSED.labels(stream=stream).inc()
        if self.echo is not None:
            self.echo(line)
        if self.line_logger is not None:
            self.line_logger.append(line)

        rule = classify(line, self.rules)
        if rule is None:
            return False

        PATTERN_MATCHES.labels(pattern=rule.key).inc()
        decision = self.alert_manager.should_send_alert(rule.key)
        if not decision.send:
            ALERT_DECISIONS.labels(pattern=rule.key, outcome="suppressed").inc()
            log.debug("Alert suppressed", pattern=rule.key, suppressed=decision.suppressed)
            return False

        ALERT_DECISIONS.labels(pattern=rule.key, outcome="sent").inc()
        log.info("Sending alert", pattern=rule.key, suppressed=decision.suppressed)
        if not self.webhook.send_alert(self.msg_prefix, line, decision.suppressed):
            DISPATCH_FAILURES.inc()
        return True

    def scan(self, lines: Iterable[str], stream: str = "stdin") -> int:
        """Process every line from an iterable.

        Returns:
            Number of lines processed
        """
        count = 0
        for line in lines:
            self.process_line(line.rstrip("\r\n"), stream=stream)
            count += 1
        return count
