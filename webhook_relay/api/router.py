from fastapi import APIRouter, Depends

from webhook_relay.api.routes.health import router as health_router
from webhook_relay.api.routes.webhooks import router as webhooks_router
from webhook_relay.services.webhook_auth import require_webhook_secret

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(webhooks_router, dependencies=[Depends(require_webhook_secret)])
