"""
Televise Lifespan Management
=============================
FastAPI lifespan hook for service initialization and shutdown.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ..core.config import get_config
from ..utils.logger import configure_logging, get_logger
from .services import build_services

logger = get_logger(__name__)


@asynccontextmanager
async def televise_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup:
      1. Configure structured logging
      2. Load configuration
      3. Build services (database, presence store, poller, pruner)
      4. Start background loops

    Shutdown:
      5. Stop loops, close storage handles
    """
    config = getattr(app.state, "config", None) or get_config()
    configure_logging(config.log_level, json_output=config.log_json)
    logger.info("televise_starting", backend=config.presence_backend.value, port=config.port)

    services = getattr(app.state, "services", None)
    if services is None:
        services = await build_services(config)
        app.state.services = services

    await services.start()
    logger.info("televise_operational")

    yield

    logger.info("televise_shutting_down")
    try:
        await services.stop()
        logger.info("televise_shutdown_complete")
    except Exception as e:
        logger.error("televise_shutdown_error", error=str(e))
