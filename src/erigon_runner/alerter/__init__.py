"""Log-line alerting for supervised processes.

Provides pattern classification, cooldown bookkeeping, line logging and
chat webhook delivery.
"""

from .alert_manager import AlertDecision, AlertManager
from .classifier import NEVER_COOLDOWN, PatternRule, classify
from .line_log import LineLogger
from .processor import LogAlerter
from .webhook import WebhookClient, build_message

__all__ = [
    # Pipeline
    "LogAlerter",
    # Classification
    "PatternRule",
    "classify",
    "NEVER_COOLDOWN",
    # Cooldowns
    "AlertManager",
    "AlertDecision",
    # Output
    "LineLogger",
    "WebhookClient",
    "build_message",
]
