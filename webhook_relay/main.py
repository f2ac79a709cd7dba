import logging

from fastapi import FastAPI

from webhook_relay.api.router import api_router
from webhook_relay.core.config import get_settings


logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_application() -> FastAPI:
    _configure_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=None,
    )

    app.include_router(api_router, prefix=settings.api_prefix)
    logger.info(
        "Application configured env=%s api_prefix=%s shared_secret=%s",
        settings.app_env,
        settings.api_prefix or "/",
        "enabled" if settings.webhook_secret else "disabled",
    )

    return app


app = create_application()
