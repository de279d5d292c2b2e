"""
Board API entrypoint (`sportshq-api`).

Hosting platforms inject PORT; it wins over SHQ_API_PORT. Runs a single
worker: the SWR cache, the inflight map and the day-scan token bucket are all
process-local, so extra workers would multiply upstream traffic.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging("api")
    port = int(os.environ.get("PORT") or settings.api_port)
    logger.info("api_service_launching", host=settings.api_host, port=port)

    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=port,
        workers=1,
        log_config=None,  # uvicorn records go through the structlog root handler
        log_level=settings.log_level.lower(),
        access_log=False,
        timeout_keep_alive=30,
    )


if __name__ == "__main__":
    main()
