import logging
from collections.abc import Mapping
from typing import Any

from fastapi import HTTPException, status

from webhook_relay.core.config import Settings
from webhook_relay.schemas.webhook import WebhookAckResponse, WebhookSource
from webhook_relay.services.event_log import EventLogError, EventLogger
from webhook_relay.services.meeting_store import MeetingEventResult, MeetingStore, MeetingStoreError
from webhook_relay.services.notifier import NotificationStatus, WakeNotifier
from webhook_relay.services.security_utils import extract_bearer_token, tokens_match
from webhook_relay.services.summary_builder import build_meeting_summary

logger = logging.getLogger(__name__)


class KrispWebhookService:
    def __init__(
        self,
        settings: Settings,
        meeting_store: MeetingStore | None = None,
        event_logger: EventLogger | None = None,
        notifier: WakeNotifier | None = None,
    ) -> None:
        self.settings = settings
        self.meeting_store = meeting_store or MeetingStore(settings.krisp_data_dir)
        self.event_logger = event_logger or EventLogger(settings.log_dir)
        self.notifier = notifier or WakeNotifier.from_settings(settings)

    def validate_auth(self, authorization: str | None) -> None:
        expected_token = self.settings.krisp_webhook_secret
        if not expected_token:
            return

        if tokens_match(extract_bearer_token(authorization), expected_token):
            return
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unauthorized",
        )

    def process_event(self, payload: Mapping[str, Any]) -> WebhookAckResponse:
        event = self._to_text(payload.get("event")) or "unknown"
        data = payload.get("data")
        meeting = data.get("meeting") if isinstance(data, Mapping) else None
        title = meeting.get("title") if isinstance(meeting, Mapping) else None

        try:
            self.event_logger.log_event(WebhookSource.krisp.value, event, payload)
        except EventLogError as exc:
            logger.error("Audit log write failed source=krisp event=%s error=%s", event, exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to persist webhook event.",
            ) from exc

        logger.info("Webhook received provider=krisp event=%s title=%s", event, title or "unknown")

        try:
            result = self.meeting_store.record_event(event, payload)
        except MeetingStoreError as exc:
            logger.error("Meeting store write failed source=krisp event=%s error=%s", event, exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Unable to persist meeting data.",
            ) from exc

        notification_status = self._notify(result, event)
        logger.info(
            "Webhook processed provider=krisp event=%s meeting_dir=%s artifact=%s notification=%s",
            event,
            result.directory,
            result.artifact.name if result.artifact else None,
            notification_status.value,
        )
        return WebhookAckResponse()

    def _notify(self, result: MeetingEventResult, event: str) -> NotificationStatus:
        summary = build_meeting_summary(
            result.directory,
            result.metadata,
            event,
            available=result.artifacts_available,
        )
        if not summary:
            return NotificationStatus.skipped
        return self.notifier.notify(summary)

    def _to_text(self, value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            cleaned = value.strip()
            return cleaned or None
        return str(value)
