from fastapi import APIRouter

from webhook_relay.core.config import get_settings
from webhook_relay.schemas.health import HealthResponse
from webhook_relay.services.health_service import HealthService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    settings = get_settings()
    service = HealthService(settings)
    return service.get_status()
