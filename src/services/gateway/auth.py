"""OAuth sign-in, persisted sessions and the auth-event stream."""
import logging
import secrets
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from models.auth_session import AuthSession
from models.user import User
from services.errors import AuthInitiationError
from services.gateway.types import (
    AuthEvent,
    AuthListener,
    AuthUser,
    ListenerHandle,
    Session,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
# Tokens without an expires_in are assumed valid for an hour
DEFAULT_EXPIRES_IN = 3600
# A sign-in not completed within this window must be started again
PENDING_STATE_TTL = 600


@dataclass(frozen=True)
class OAuthProvider:
    """Endpoints and credentials for one OAuth provider."""

    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    client_id: str
    client_secret: str
    scopes: tuple[str, ...] = ("openid", "email", "profile")


def providers_from_settings(settings: Settings) -> dict[str, OAuthProvider]:
    """Build the provider registry from configuration."""
    return {
        "google": OAuthProvider(
            name="google",
            authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
            token_url="https://oauth2.googleapis.com/token",
            userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
        ),
    }


@dataclass(frozen=True)
class _PendingSignIn:
    state: str
    provider: OAuthProvider
    redirect_to: str
    started_at: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() - self.started_at > PENDING_STATE_TTL


class OAuthAuthClient:
    """
    Auth half of the gateway.

    Keeps the current session in memory, mirrors it to the auth_sessions table
    so it survives restarts, and reports transitions to registered listeners.
    One instance serves one browser: it holds at most one pending sign-in, so
    a state issued to another browser, or superseded by a newer sign-in, is
    rejected.
    Listeners are awaited in registration order; their exceptions are logged
    and never reach the caller that caused the transition.
    """

    def __init__(
        self,
        providers: dict[str, OAuthProvider],
        session_factory: async_sessionmaker[AsyncSession],
        session_key: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._providers = providers
        self._session_factory = session_factory
        self._session_key = session_key
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._owns_http = http_client is None
        self._session: Session | None = None
        self._loaded = False
        self._pending: _PendingSignIn | None = None
        self._listeners: list[AuthListener] = []

    # -- listeners -----------------------------------------------------------

    def on_auth_state_change(self, callback: AuthListener) -> ListenerHandle:
        """Register a listener for SIGNED_IN/TOKEN_REFRESHED/SIGNED_OUT."""
        self._listeners.append(callback)

        def detach() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return ListenerHandle(detach)

    async def _emit(self, event: AuthEvent, session: Session | None) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, session)
            except Exception:
                logger.exception("auth_listener_failed", extra={"event": event.value})

    # -- sign-in -------------------------------------------------------------

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """
        Start an authorization-code flow.

        Returns:
            The provider URL to send the browser to.

        Raises:
            AuthInitiationError: Unknown or unconfigured provider.
        """
        oauth = self._providers.get(provider)
        if oauth is None:
            raise AuthInitiationError(f"Unknown OAuth provider: {provider}")
        if not oauth.client_id:
            raise AuthInitiationError(f"OAuth provider {provider} has no client id configured")

        state = secrets.token_urlsafe(24)
        self._pending = _PendingSignIn(
            state=state,
            provider=oauth,
            redirect_to=redirect_to,
            started_at=time.monotonic(),
        )
        params = {
            "client_id": oauth.client_id,
            "redirect_uri": redirect_to,
            "response_type": "code",
            "scope": " ".join(oauth.scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{oauth.authorize_url}?{urlencode(params)}"

    async def exchange_code_for_session(self, code: str, state: str) -> Session:
        """
        Finish a flow started by sign_in_with_oauth.

        Stores the new session and emits SIGNED_IN.

        Raises:
            AuthInitiationError: Unknown state, provider error, or storage failure.
        """
        pending = self._pending
        if (
            pending is None
            or pending.is_expired
            or not secrets.compare_digest(pending.state.encode(), state.encode())
        ):
            raise AuthInitiationError("Unknown or expired OAuth state")
        self._pending = None
        oauth = pending.provider

        token = await self._token_request(
            oauth,
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": pending.redirect_to,
            },
        )
        user = await self._fetch_user(oauth, token["access_token"])
        session = Session(
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            expires_at=int(time.time()) + int(token.get("expires_in", DEFAULT_EXPIRES_IN)),
            user=user,
            provider=oauth.name,
        )
        await self._store(session)
        self._session = session
        self._loaded = True
        logger.info("signed_in", extra={"user_id": user.id, "provider": oauth.name})
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def _token_request(self, oauth: OAuthProvider, data: dict[str, str]) -> dict:
        payload = {**data, "client_id": oauth.client_id, "client_secret": oauth.client_secret}
        try:
            response = await self._http.post(
                oauth.token_url,
                data=payload,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            token = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AuthInitiationError(f"Token request to {oauth.name} failed: {e}") from e
        if "access_token" not in token:
            raise AuthInitiationError(f"Token response from {oauth.name} has no access_token")
        return token

    async def _fetch_user(self, oauth: OAuthProvider, access_token: str) -> AuthUser:
        try:
            response = await self._http.get(
                oauth.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            info = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AuthInitiationError(f"Userinfo request to {oauth.name} failed: {e}") from e
        if not info.get("sub"):
            raise AuthInitiationError(f"Userinfo from {oauth.name} has no subject")
        return AuthUser(id=str(info["sub"]), email=info.get("email"))

    # -- session lookup ------------------------------------------------------

    async def get_session(self) -> Session | None:
        """
        Return the current valid session, if any.

        An expired session is refreshed when it carries a refresh token
        (emitting TOKEN_REFRESHED); otherwise, or if the refresh fails, it is
        dropped and None is returned.
        """
        if not self._loaded:
            self._session = await self._load()
            self._loaded = True

        session = self._session
        if session is None or not session.is_expired:
            return session

        if session.refresh_token:
            try:
                return await self.refresh_session()
            except AuthInitiationError as e:
                logger.warning("Session refresh failed: %s", e)

        logger.info("session_expired", extra={"user_id": session.user.id})
        self._session = None
        await self._forget()
        return None

    async def refresh_session(self) -> Session:
        """Exchange the refresh token for a new access token."""
        session = self._session
        if session is None or not session.refresh_token:
            raise AuthInitiationError("No session to refresh")
        oauth = self._providers.get(session.provider)
        if oauth is None:
            raise AuthInitiationError(f"Unknown OAuth provider: {session.provider}")

        token = await self._token_request(
            oauth,
            {"grant_type": "refresh_token", "refresh_token": session.refresh_token},
        )
        refreshed = Session(
            access_token=token["access_token"],
            # Providers may omit the refresh token on refresh; keep the old one
            refresh_token=token.get("refresh_token") or session.refresh_token,
            expires_at=int(time.time()) + int(token.get("expires_in", DEFAULT_EXPIRES_IN)),
            user=session.user,
            provider=session.provider,
        )
        await self._store(refreshed)
        self._session = refreshed
        await self._emit(AuthEvent.TOKEN_REFRESHED, refreshed)
        return refreshed

    # -- sign-out ------------------------------------------------------------

    async def sign_out(self) -> None:
        """Drop the session locally and in storage, then emit SIGNED_OUT."""
        self._session = None
        self._loaded = True
        await self._forget()
        await self._emit(AuthEvent.SIGNED_OUT, None)

    # -- persistence ---------------------------------------------------------

    async def _load(self) -> Session | None:
        query = (
            select(AuthSession, User.email)
            .join(User, AuthSession.user_id == User.id)
            .where(AuthSession.key == self._session_key)
        )
        try:
            async with self._session_factory() as db:
                row = (await db.execute(query)).first()
        except SQLAlchemyError as e:
            raise AuthInitiationError(f"Session lookup failed: {e}") from e
        if row is None:
            return None
        stored, email = row
        return Session(
            access_token=stored.access_token,
            refresh_token=stored.refresh_token,
            expires_at=stored.expires_at,
            user=AuthUser(id=stored.user_id, email=email),
            provider=stored.provider,
        )

    async def _store(self, session: Session) -> None:
        try:
            async with self._session_factory() as db:
                await db.merge(
                    User(id=session.user.id, provider=session.provider, email=session.user.email),
                )
                await db.merge(
                    AuthSession(
                        key=self._session_key,
                        user_id=session.user.id,
                        provider=session.provider,
                        access_token=session.access_token,
                        refresh_token=session.refresh_token,
                        expires_at=session.expires_at,
                    ),
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise AuthInitiationError(f"Storing session failed: {e}") from e

    async def _forget(self) -> None:
        try:
            async with self._session_factory() as db:
                await db.execute(delete(AuthSession).where(AuthSession.key == self._session_key))
                await db.commit()
        except SQLAlchemyError as e:
            raise AuthInitiationError(f"Clearing session failed: {e}") from e

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()
