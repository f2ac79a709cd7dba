import logging

import uvicorn

from webhook_relay.core.config import get_settings
from webhook_relay.core.tls import load_tls_files
from webhook_relay.main import app

logger = logging.getLogger(__name__)


def run() -> None:
    settings = get_settings()
    tls_files = load_tls_files(settings)

    if tls_files:
        logger.info("webhook-relay listening on %s:%s (TLS)", settings.host, settings.port)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            ssl_certfile=tls_files.certfile,
            ssl_keyfile=tls_files.keyfile,
            ssl_ca_certs=tls_files.ca_certs,
        )
        return

    logger.info("webhook-relay listening on %s:%s (plain HTTP)", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
