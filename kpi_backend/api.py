"""
FastAPI app entry point aggregating per-domain routers under kpi_backend/routes.
Keep as `uvicorn kpi_backend.api:app`.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .client import LocalClient, create_client
from .routes import base as base_routes
from .routes import entries as entries_routes
from .routes import logs as logs_routes
from .routes import ranking as ranking_routes
from .routes import settings as settings_routes
from .routes import users as users_routes

logger = logging.getLogger(__name__)


def create_app(client: LocalClient | None = None) -> FastAPI:
    """Build the app; without an explicit client one is opened on the configured DB at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "client", None) is None:
            app.state.client = create_client()
            logger.info("seeded tables on startup: %s", app.state.client.seeded or "none")
        yield

    app = FastAPI(title=base_routes.APP_NAME, version=base_routes.APP_VERSION, lifespan=lifespan)
    app.state.client = client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers (split by business domain)
    app.include_router(base_routes.router)
    app.include_router(users_routes.router)
    app.include_router(entries_routes.router)
    app.include_router(settings_routes.router)
    app.include_router(ranking_routes.router)
    app.include_router(logs_routes.router)
    return app


app = create_app()
