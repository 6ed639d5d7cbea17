"""FastAPI application entry point."""
import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.sessions import SessionMiddleware

from api.routers import auth, bookmarks, events, health, pages
from core.config import Settings, get_settings
from core.logging import configure_logging
from core.redis import RedisClient, set_redis_client
from db.session import create_engine, create_session_factory, init_models
from services.client_sessions import ClientSessions, GatewayForClient
from services.gateway import GatewayFactory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the per-browser gateway factory and the controller registry.

    A factory preset on app.state (tests) is used as-is; otherwise the
    database, Redis and OAuth pieces are wired from settings and released on
    shutdown.
    """
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)

    async with AsyncExitStack() as stack:
        gateway_for_client: GatewayForClient | None = app.state.gateway_for_client
        if gateway_for_client is None:
            redis_client = RedisClient(settings.redis_url, enabled=settings.redis_enabled)
            await redis_client.connect()
            set_redis_client(redis_client)
            stack.push_async_callback(redis_client.close)
            stack.callback(set_redis_client, None)

            engine = create_engine(settings.database_url)
            stack.push_async_callback(engine.dispose)
            await init_models(engine)
            session_factory = create_session_factory(engine)
            app.state.session_factory = session_factory

            factory = GatewayFactory(settings, session_factory)
            stack.push_async_callback(factory.aclose)
            gateway_for_client = factory

        sessions = ClientSessions(
            gateway_for_client,
            redirect_url=settings.oauth_callback_url,
            provider=settings.oauth_provider,
            max_clients=settings.max_client_sessions,
        )
        stack.push_async_callback(sessions.aclose)
        app.state.sessions = sessions
        logger.info("app_started", extra={"redirect_url": settings.redirect_url})
        yield


def create_app(
    settings: Settings | None = None,
    gateway_for_client: GatewayForClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """
    Create the app.

    Args:
        settings: Defaults to get_settings().
        gateway_for_client:
            Builds the gateway for one browser's client key. Built from
            settings at startup when omitted.
        session_factory: Database sessions for the health check; set at startup
            when gateway_for_client is omitted.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Smart Bookmark",
        description="Personal bookmarks with OAuth sign-in and live updates.",
        version="0.1.0",
        lifespan=lifespan,
    )
    # Signed cookie carrying the browser's client key
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie,
        same_site="lax",
        https_only=settings.secure_cookies,
    )
    app.state.settings = settings
    app.state.gateway_for_client = gateway_for_client
    app.state.session_factory = session_factory
    app.state.sessions = None

    app.include_router(health.router)
    app.include_router(pages.router)
    app.include_router(auth.router)
    app.include_router(bookmarks.router)
    app.include_router(events.router)
    return app
