from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from battleplan.application.dtos.common_dto import HealthResponse, RootResponse
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.api.middlewares import add_default_middlewares
from battleplan.infrastructure.api.routes.display_routes import router as display_router
from battleplan.infrastructure.api.routes.migration_routes import router as migration_router
from battleplan.infrastructure.api.routes.owner_image_routes import router as owner_image_router
from battleplan.infrastructure.cache.ttl_cache import DEFAULT_TTL_SECONDS, TTLCache


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Battleplan Images",
        version="0.1.0",
        description="""
        ## Battleplan Images API

        Image management and card image resolution for battles and collections,
        backed by Supabase (or a local PostgreSQL / in-memory store in development).

        ### Features
        - **Owner Images**: Ordered image lists per battle or collection with a single primary image
        - **Uploads**: Downscaled and re-encoded before they reach storage
        - **Card Resolution**: Own images, legacy image, model images, game image, game icon, placeholder
        - **Migration**: Move legacy single-image fields into the image tables

        ### Authentication
        Mutating endpoints require a Bearer token in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        - **400 Bad Request**: Invalid request parameters or malformed data
        - **401 Unauthorized**: Missing or invalid authentication token
        - **404 Not Found**: Requested resource does not exist or user doesn't have access
        - **422 Unprocessable Entity**: Validation error in request body
        - **500 Internal Server Error**: Unexpected server error
        """,
    )
    app.state.refresh_bus = RefreshBus()
    app.state.game_cache = TTLCache(float(os.getenv("GAME_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS)))
    add_default_middlewares(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the Battleplan Images API",
    )
    def root():
        return RootResponse(status="ok", service="battleplan-images", version=app.version)

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
    )
    def health():
        return HealthResponse(status="healthy")

    app.include_router(owner_image_router)
    app.include_router(display_router)
    app.include_router(migration_router)
    return app


app = create_app()
