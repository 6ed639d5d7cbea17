"""Shared fixtures."""
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.main import create_app
from core.config import Settings
from db.session import create_engine, create_session_factory, init_models
from models.user import User
from services.bookmark_store import BookmarkStore
from services.session_context import SessionContext
from services.session_controller import SessionController
from tests.fakes import REDIRECT_URL, InMemoryGateway


@pytest.fixture
def gateway() -> InMemoryGateway:
    """Fresh in-memory backend."""
    return InMemoryGateway()


@pytest.fixture
def context() -> SessionContext:
    return SessionContext()


@pytest.fixture
def store(gateway: InMemoryGateway, context: SessionContext) -> BookmarkStore:
    return BookmarkStore(gateway, context)


@pytest.fixture
async def controller(gateway: InMemoryGateway) -> AsyncGenerator[SessionController]:
    """Controller over the in-memory gateway, torn down after the test."""
    controller = SessionController(gateway, redirect_url=REDIRECT_URL)
    yield controller
    await controller.teardown()


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """SQLite-backed session factory with the schema created and two users."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)
    factory = create_session_factory(engine)
    async with factory() as session:
        session.add_all([
            User(id="user-1", provider="google", email="one@example.com"),
            User(id="user-2", provider="google", email="two@example.com"),
        ])
        await session.commit()
    yield factory
    await engine.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, database_url="sqlite+aiosqlite://")


@pytest.fixture
async def app(
    settings: Settings,
    gateway: InMemoryGateway,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[FastAPI]:
    """App over the in-memory backend, with the lifespan running."""
    app = create_app(
        settings=settings,
        gateway_for_client=gateway.for_client,
        session_factory=session_factory,
    )
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """One browser: cookies persist across its requests."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def other_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """A second browser against the same app, with its own cookies."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
