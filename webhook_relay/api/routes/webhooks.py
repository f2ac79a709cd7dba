import json
import logging
from typing import Any
from urllib.parse import parse_qs

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from webhook_relay.core.config import get_settings
from webhook_relay.schemas.webhook import WebhookAckResponse
from webhook_relay.services.github_webhook_service import GitHubWebhookService
from webhook_relay.services.krisp_webhook_service import KrispWebhookService

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)

_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
_JSON_CONTENT_TYPE = "application/json"


@router.post(
    "/github",
    response_model=WebhookAckResponse,
    response_model_exclude_none=True,
)
async def receive_github_webhook(request: Request) -> WebhookAckResponse:
    service = GitHubWebhookService(get_settings())
    raw_body = await request.body()
    event = request.headers.get("x-github-event") or "unknown"

    try:
        service.validate_signature(raw_body, request.headers.get("x-hub-signature-256"))
    except HTTPException as exc:
        logger.warning(
            "Webhook rejected provider=github path=%s event=%s status_code=%s",
            str(request.url.path),
            event,
            exc.status_code,
        )
        raise

    payload = _load_github_payload(raw_body, request.headers.get("content-type"))
    return await run_in_threadpool(service.process_event, event, payload)


@router.post(
    "/hubspot",
    response_model=WebhookAckResponse,
    response_model_exclude_none=True,
)
async def receive_hubspot_webhook(request: Request) -> WebhookAckResponse:
    logger.info("Webhook received provider=hubspot path=%s handler=not_implemented", str(request.url.path))
    return WebhookAckResponse(message="not implemented")


@router.post(
    "/krisp",
    response_model=WebhookAckResponse,
    response_model_exclude_none=True,
)
async def receive_krisp_webhook(request: Request) -> WebhookAckResponse:
    service = KrispWebhookService(get_settings())

    try:
        service.validate_auth(request.headers.get("authorization"))
    except HTTPException as exc:
        logger.warning(
            "Webhook rejected provider=krisp path=%s status_code=%s",
            str(request.url.path),
            exc.status_code,
        )
        raise

    raw_body = await request.body()
    payload = _load_json_object(raw_body)
    return await run_in_threadpool(service.process_event, payload)


def _load_github_payload(raw_body: bytes, content_type: str | None) -> dict[str, Any]:
    media_type = (content_type or "").split(";", maxsplit=1)[0].strip().lower()

    if media_type == _FORM_CONTENT_TYPE:
        form = parse_qs(raw_body.decode("utf-8", errors="replace"))
        payload_values = form.get("payload")
        if not payload_values:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Form body must include a payload field.",
            )
        return _load_json_object(payload_values[0].encode("utf-8"))

    if media_type and media_type != _JSON_CONTENT_TYPE and not media_type.endswith("+json"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported content type: {media_type}",
        )
    return _load_json_object(raw_body)


def _load_json_object(raw_body: bytes) -> dict[str, Any]:
    try:
        parsed_payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Webhook body rejected reason=invalid_json")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="invalid JSON",
        ) from exc

    if not isinstance(parsed_payload, dict):
        logger.warning("Webhook body rejected reason=not_an_object")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object.",
        )

    return parsed_payload
