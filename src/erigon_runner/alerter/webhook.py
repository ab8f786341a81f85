"""Chat webhook client for sending alerts."""

import httpx
import structlog

from erigon_runner.errors import DispatchError

log = structlog.get_logger()

DEFAULT_TIMEOUT = 10.0


def build_message(prefix: str, log_line: str, suppressed: int = 0) -> str:
    """Format alert text: prefix, the triggering line, and a suppression note."""
    text = f"{prefix}\n{log_line}"
    if suppressed > 0:
        text = f"{text}\nSuppressed {suppressed} duplicate(s)"
    return text


class WebhookClient:
    """Posts {"text": ...} messages to a chat webhook (Google Chat style)."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ):
        self.webhook_url = webhook_url
        self._client = client or httpx.Client(timeout=timeout)

    def _post(self, text: str) -> None:
        try:
            response = self._client.post(self.webhook_url, json={"text": text})
        except (httpx.RequestError, httpx.InvalidURL) as e:
            raise DispatchError(f"webhook request failed: {e}") from e

        if not response.is_success:
            raise DispatchError(f"webhook returned status {response.status_code}")

    def send(self, text: str) -> bool:
        """Send a message.

        Failures are logged and swallowed; nothing is retried.

        Returns:
            True if the webhook answered 2xx, False otherwise
        """
        try:
            self._post(text)
        except DispatchError as e:
            log.error("Alert delivery failed", error=str(e))
            return False

        log.debug("Webhook message sent")
        return True

    def send_alert(self, prefix: str, log_line: str, suppressed: int = 0) -> bool:
        """Send an alert for a matched log line."""
        return self.send(build_message(prefix, log_line, suppressed))

    def close(self) -> None:
        self._client.close()
