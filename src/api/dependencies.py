"""FastAPI dependencies for injection."""
import secrets
from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from services.client_sessions import ClientSessions
from services.gateway.types import AuthUser
from services.session_controller import SessionController

# Key in the signed cookie session identifying the browser
CLIENT_KEY = "client_key"


def get_sessions(request: Request) -> ClientSessions:
    """The controller registry, created in the lifespan."""
    sessions = request.app.state.sessions
    if sessions is None:
        raise HTTPException(status_code=503, detail="Session registry not started")
    return sessions


def get_client_key(request: Request) -> str | None:
    """Client key of the requesting browser, None if it never started a sign-in."""
    return request.session.get(CLIENT_KEY)


def ensure_client_key(request: Request) -> str:
    """Client key of the requesting browser, issuing one if needed."""
    client_key = request.session.get(CLIENT_KEY)
    if client_key is None:
        client_key = secrets.token_urlsafe(32)
        request.session[CLIENT_KEY] = client_key
    return client_key


async def get_controller(
    client_key: str | None = Depends(get_client_key),
    sessions: ClientSessions = Depends(get_sessions),
) -> SessionController | None:
    """The requesting browser's controller, None for browsers without a client key."""
    if client_key is None:
        return None
    return await sessions.get(client_key)


def require_controller(
    controller: SessionController | None = Depends(get_controller),
) -> SessionController:
    """Like get_controller, 401 for browsers without a client key."""
    if controller is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return controller


def get_current_user(
    controller: SessionController = Depends(require_controller),
) -> AuthUser:
    """Signed-in user of the requesting browser, 401 when anonymous."""
    user = controller.context.user
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return user


async def get_async_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Database session for request handlers that query directly."""
    session_factory = request.app.state.session_factory
    if session_factory is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    async with session_factory() as session:
        yield session


__all__ = [
    "CLIENT_KEY",
    "ensure_client_key",
    "get_async_session",
    "get_client_key",
    "get_controller",
    "get_current_user",
    "get_sessions",
    "get_settings",
    "require_controller",
]
