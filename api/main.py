"""
FastAPI Main Application
========================

Application factory with middleware, routes, and lifespan management.

The store, media relay and services are built from settings here and
placed on ``app.state``; route dependencies read them from there. Tests
pass their own storage and relay into ``create_app``.

Run with:
    uvicorn api.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError

from api.middleware.error_handler import setup_error_handling
from api.middleware.rate_limiter import setup_rate_limiting
from api.routes import auth, health, users
from config import Settings, configure_logging, get_settings
from core.accounts import AccountService
from core.media import MediaRelay, create_media_relay
from core.store import Storage, create_storage
from core.tokens import TokenIssuer


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create Mongo indexes (failures are logged, the app still starts
    and the readiness probe reports the database as down).

    Shutdown: release the database client.
    """
    settings: Settings = app.state.settings
    storage: Storage = app.state.storage

    logger.info("Starting VidTube API...")
    if settings.storage_backend == "mongo":
        try:
            await storage.ensure_indexes()
            logger.info(f"MongoDB indexes ensured on database '{settings.mongodb_database}'")
        except PyMongoError as e:
            logger.error(f"Could not create MongoDB indexes: {e}")

    logger.info(f"API running at http://{settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down VidTube API...")
    await storage.close()


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    media_relay: Optional[MediaRelay] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (uses get_settings() if not provided)
        storage: User/subscription stores (built from settings if not provided)
        media_relay: Media host client (built from settings if not provided)
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="VidTube API",
        description="""
        Backend for a video-sharing application.

        ## Authentication
        Login returns a short-lived access token and a refresh token, also set
        as http-only cookies. Send the access token as a Bearer token (or rely
        on the cookie); exchange the refresh token at `/users/refresh-token`.
        Each refresh token works once.
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    storage = storage or create_storage(settings)
    media_relay = media_relay or create_media_relay(settings)
    token_issuer = TokenIssuer(storage.users, settings)

    app.state.settings = settings
    app.state.storage = storage
    app.state.media_relay = media_relay
    app.state.account_service = AccountService(
        store=storage.users,
        media_relay=media_relay,
        token_issuer=token_issuer,
        subscriptions=storage.subscriptions,
        settings=settings,
    )

    # =========================================================================
    # Middleware and error handling
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_error_handling(app)
    setup_rate_limiting(app, settings)

    # =========================================================================
    # Router registration
    # =========================================================================

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(auth.router, prefix="/api/v1/users", tags=["auth"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["users"])

    if settings.media_backend == "local":
        Path(settings.local_media_dir).mkdir(parents=True, exist_ok=True)
        app.mount(settings.local_media_url, StaticFiles(directory=settings.local_media_dir), name="media")

    @app.get("/", tags=["root"])
    async def root():
        """API information and links."""
        return {
            "message": "VidTube API",
            "version": "1.0.0",
            "docs": "/api/docs",
            "health": "/api/v1/health",
        }

    return app
