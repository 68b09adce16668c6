"""FastAPI application factory with the background poll scheduler."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from listing_sync.client import BackendClient
from listing_sync.config import Settings
from listing_sync.db import HistoryStore
from listing_sync.engine import SyncEngine
from listing_sync.logging import configure_logging, get_logger

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(settings: Settings | None = None, *, run_poller: bool = True) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Application settings. Loaded from env if not provided.
        run_poller: Whether to start polling the backend on startup.
    """
    if settings is None:
        settings = Settings()

    configure_logging(json_output=settings.json_logs)

    client = BackendClient(settings)
    store = HistoryStore(settings.history_db_path) if settings.history_db_path else None
    engine = SyncEngine(client, settings, store=store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if store is not None:
            await store.initialize()
            await engine.load_history()
        app.state.engine = engine
        app.state.settings = settings

        if run_poller:
            engine.start()
            logger.info(
                "web_server_started",
                poll_interval_seconds=settings.poll_interval_seconds,
            )
        else:
            logger.info("web_server_started", poller="disabled")

        yield

        # Shutdown: let an in-flight cycle finish before closing its resources
        await engine.stop()
        await client.close()
        if store is not None:
            await store.close()
        logger.info("web_server_stopped")

    app = FastAPI(title="Listing Sync", lifespan=lifespan)
    app.add_middleware(SecurityHeadersMiddleware)

    from listing_sync.web.routes import router

    app.include_router(router)

    return app
