import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, status

from webhook_relay.core.config import Settings
from webhook_relay.schemas.webhook import WebhookAckResponse, WebhookSource
from webhook_relay.services.event_log import EventLogError, EventLogger
from webhook_relay.services.github_events import format_github_event
from webhook_relay.services.notifier import NotificationStatus, WakeNotifier
from webhook_relay.services.security_utils import verify_signature

logger = logging.getLogger(__name__)


class GitHubWebhookService:
    def __init__(
        self,
        settings: Settings,
        event_logger: EventLogger | None = None,
        notifier: WakeNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.event_logger = event_logger or EventLogger(settings.log_dir)
        self.notifier = notifier or WakeNotifier.from_settings(settings)

    def validate_signature(self, raw_body: bytes, signature: str | None) -> None:
        secret = self.settings.github_webhook_secret
        if not secret:
            return

        if verify_signature(raw_body, signature, secret):
            return
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="invalid signature",
        )

    def process_event(self, event: str, payload: Mapping[str, Any]) -> WebhookAckResponse:
        action = payload.get("action")
        event_label = f"{event}.{action}" if isinstance(action, str) and action else event

        try:
            self.event_logger.log_event(WebhookSource.github.value, event_label, payload)
        except EventLogError as exc:
            logger.error("Audit log write failed source=github event=%s error=%s", event_label, exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to persist webhook event.",
            ) from exc

        message = format_github_event(event, payload)
        if not message:
            logger.info("Webhook ignored provider=github event=%s reason=no_message", event_label)
            return WebhookAckResponse()

        logger.info(
            "Webhook received provider=github event=%s action=%s message=%s timestamp=%s",
            event,
            action,
            message,
            datetime.now(UTC).isoformat(),
        )
        notification_status = self.notifier.notify(message)
        if notification_status == NotificationStatus.failed:
            logger.warning("Webhook notification not delivered provider=github event=%s", event_label)
        return WebhookAckResponse()
