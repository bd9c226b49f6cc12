"""
Televise Entry Point
====================
FastAPI server for the viewer-presence service.

Environment:
  - PORT: listen port (Cloud Run sets this dynamically)
  - TELEVISE_PRESENCE_BACKEND: SQL, FIRESTORE or REDIS
  - ALLOWED_ORIGINS: comma-separated CORS origins, "*" by default
"""

from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import register_error_handlers, router
from .bootstrap import Services, televise_lifespan
from .core.config import TeleviseConfig, get_config
from .middleware import RequestIDMiddleware


def create_app(
    config: Optional[TeleviseConfig] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the application.

    Passing prebuilt ``services`` skips storage wiring in the lifespan,
    which is how tests run the app against fakes.
    """
    config = config or (services.config if services else None) or get_config()

    app = FastAPI(
        title="Televise",
        description="Viewer presence, broadcast metadata and live polls",
        version=__version__,
        lifespan=televise_lifespan,
    )
    app.state.config = config
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.origins(),
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    # Added last so it executes first
    app.add_middleware(RequestIDMiddleware)

    register_error_handlers(app)
    app.include_router(router)
    return app


def run() -> None:
    config = get_config()
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    run()
