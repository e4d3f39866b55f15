"""Impact Assessment Portal — FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from impact_portal.config import Settings, get_settings
from impact_portal.middleware import configure_cors, configure_rate_limiting, lifespan, logging_middleware
from impact_portal.routers import auth, health, realtime, requests, results
from impact_portal.store import DataStore, data_store


def create_app(settings: Settings | None = None, store: DataStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Submit and track release impact assessment requests",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # Store settings and the backend on app state
    app.state.settings = settings
    app.state.store = store if store is not None else data_store

    # Middleware
    app.middleware("http")(logging_middleware)
    configure_rate_limiting(app, settings)
    configure_cors(app, settings)

    # Routers
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(requests.router)
    app.include_router(results.router)
    app.include_router(realtime.router)

    return app


# Default app instance for uvicorn
app = create_app()
