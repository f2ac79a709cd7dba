import json
import logging
from enum import StrEnum
from urllib import error, request

from webhook_relay.core.config import Settings

logger = logging.getLogger(__name__)

WAKE_PATH = "/hooks/wake"


class NotifyError(Exception):
    pass


class NotificationStatus(StrEnum):
    skipped = "skipped"
    sent = "sent"
    failed = "failed"


class WakeNotifier:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_seconds: float = 5.0,
        user_agent: str = "WebhookRelay/1.0",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent

    @classmethod
    def from_settings(cls, settings: Settings) -> "WakeNotifier":
        return cls(
            base_url=settings.notify_base_url,
            token=settings.notify_token,
            timeout_seconds=settings.notify_timeout_seconds,
            user_agent=settings.notify_user_agent,
        )

    def notify(self, message: str) -> NotificationStatus:
        """Forward ``message`` to the wake endpoint. Never raises."""
        if not self.token:
            logger.info("Notification skipped reason=notify_token_not_set")
            return NotificationStatus.skipped

        try:
            self._post_wake(message)
        except NotifyError as exc:
            logger.error("Notification failed error=%s", exc)
            return NotificationStatus.failed

        logger.info("Notification sent message=%s", message[:80])
        return NotificationStatus.sent

    def _post_wake(self, message: str) -> None:
        raw_payload = json.dumps({"text": message, "mode": "now"}).encode("utf-8")
        req = request.Request(
            f"{self.base_url}{WAKE_PATH}",
            data=raw_payload,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Content-Type": "application/json",
                "User-Agent": self.user_agent,
            },
            method="POST",
        )

        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                response.read()
        except error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="ignore")
            raise NotifyError(f"Wake endpoint HTTP {exc.code}: {body or 'empty response body'}") from exc
        except error.URLError as exc:
            raise NotifyError(f"Wake endpoint connection error: {exc.reason}") from exc
        except (TimeoutError, OSError) as exc:
            raise NotifyError(f"Wake endpoint transport error: {exc}") from exc
