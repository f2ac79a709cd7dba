import logging

from fastapi import Header, HTTPException, Request, status

from webhook_relay.core.config import get_settings
from webhook_relay.services.security_utils import tokens_match

logger = logging.getLogger(__name__)


def require_webhook_secret(
    request: Request,
    x_webhook_secret: str | None = Header(default=None),
) -> None:
    """Gate every webhook route on the shared ``x-webhook-secret`` header.

    An unset ``WEBHOOK_SECRET`` leaves the routes open.
    """
    expected_secret = get_settings().webhook_secret
    if not expected_secret:
        return

    if tokens_match(x_webhook_secret, expected_secret):
        return

    logger.warning(
        "Webhook rejected path=%s reason=shared_secret_mismatch has_header=%s",
        str(request.url.path),
        x_webhook_secret is not None,
    )
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized",
    )
