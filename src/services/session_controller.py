"""Keeps local session state in step with backend auth and row changes."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType

from services.bookmark_store import BookmarkStore
from services.change_subscription import ChangeSubscription
from services.errors import AuthInitiationError, GatewayError
from services.gateway.protocol import RemoteGateway
from services.gateway.types import (
    AuthEvent,
    AuthStateChange,
    AuthUser,
    ListenerHandle,
    Session,
)
from services.session_context import SessionContext

logger = logging.getLogger(__name__)


class SessionController:
    """
    Single source of truth for who is signed in.

    States are Anonymous and Authenticated(user). Identity only ever becomes
    set through initialize() or an auth event; sign_in() just starts the
    redirect flow. The controller also owns the per-user change subscription:
    at most one is open, always for the current user.

    Use as an async context manager so teardown runs on every exit path:

        async with SessionController(gateway, redirect_url) as controller:
            ...
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        redirect_url: str,
        provider: str = "google",
        context: SessionContext | None = None,
    ) -> None:
        self._gateway = gateway
        self._redirect_url = redirect_url
        self._provider = provider
        self.context = context or SessionContext()
        self.store = BookmarkStore(gateway, self.context)
        self.subscription = ChangeSubscription(gateway, self.store)
        self._listener: ListenerHandle | None = None
        # open() suspends; without the lock two overlapping sign-in events
        # could both see "no subscription" and open one each
        self._subscription_lock = asyncio.Lock()
        self._transitions: dict[AuthEvent, Callable[[Session | None], Awaitable[None]]] = {
            AuthEvent.SIGNED_IN: self._on_authenticated,
            AuthEvent.TOKEN_REFRESHED: self._on_authenticated,
            AuthEvent.SIGNED_OUT: self._on_signed_out,
        }

    async def __aenter__(self) -> "SessionController":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.teardown()

    # -- lifecycle -----------------------------------------------------------

    async def initialize(self) -> None:
        """Attach to the auth-event stream and restore an existing session."""
        if self._listener is None:
            self._listener = self._gateway.on_auth_state_change(self.on_auth_event)

        try:
            session = await self._gateway.get_session()
        except GatewayError as e:
            logger.warning("session_lookup_failed", extra={"error": str(e)})
            return

        if session is not None and session.user is not None:
            await self._authenticate(session.user)
        else:
            logger.info("no_existing_session")

    async def teardown(self) -> None:
        """Close the subscription and detach from the auth-event stream."""
        try:
            await self._close_subscription()
        finally:
            if self._listener is not None:
                self._listener.unsubscribe()
                self._listener = None

    # -- auth events ---------------------------------------------------------

    async def on_auth_event(self, event: AuthEvent, session: Session | None) -> None:
        """Auth-event stream callback."""
        await self.dispatch(AuthStateChange(event=event, session=session))

    async def dispatch(self, change: AuthStateChange) -> None:
        """Apply one auth transition."""
        logger.info("auth_event", extra={"event": change.event.value})
        await self._transitions[change.event](change.session)

    async def _on_authenticated(self, session: Session | None) -> None:
        if session is None or session.user is None:
            return
        await self._authenticate(session.user)

    async def _on_signed_out(self, session: Session | None) -> None:  # noqa: ARG002
        self.context.clear()
        await self._close_subscription()

    async def _authenticate(self, user: AuthUser) -> None:
        self.context.set_user(user)
        await self.store.refresh(user.id)
        await self._ensure_subscription(user.id)

    # -- subscription lifecycle ----------------------------------------------

    async def _ensure_subscription(self, user_id: str) -> None:
        async with self._subscription_lock:
            handle = self.context.subscription
            if handle is not None and not handle.closed:
                if handle.filter.value == user_id:
                    return
                await self.subscription.close(handle)
                self.context.subscription = None

            if self.context.user_id != user_id:
                return

            handle = await self.subscription.open(user_id)
            if handle is not None and self.context.user_id != user_id:
                # Signed out (or switched user) while the feed was opening
                await self.subscription.close(handle)
                return
            self.context.subscription = handle

    async def _close_subscription(self) -> None:
        async with self._subscription_lock:
            handle = self.context.subscription
            self.context.subscription = None
            await self.subscription.close(handle)

    # -- intents -------------------------------------------------------------

    async def sign_in(self) -> str | None:
        """
        Start the OAuth redirect flow.

        Returns:
            The provider URL to send the browser to, or None if the request
            could not be initiated (the error is logged).
        """
        try:
            return await self._gateway.sign_in_with_oauth(self._provider, self._redirect_url)
        except AuthInitiationError as e:
            logger.error("OAuth sign-in error: %s", e)
            return None

    async def complete_sign_in(self, code: str, state: str) -> bool:
        """Finish the OAuth flow; identity arrives through the SIGNED_IN event."""
        try:
            await self._gateway.exchange_code_for_session(code, state)
        except AuthInitiationError as e:
            logger.error("OAuth callback error: %s", e)
            return False
        return True

    async def sign_out(self) -> None:
        """Clear local state immediately, then sign out on the backend."""
        self.context.clear()
        await self._close_subscription()
        try:
            await self._gateway.sign_out()
        except AuthInitiationError as e:
            logger.error("Sign-out error: %s", e)

    async def add_bookmark(self, title: str, url: str) -> bool:
        """Add a bookmark for the current user and refresh on success."""
        user_id = self.context.user_id
        added = await self.store.add(user_id, title, url)
        if added:
            await self.store.refresh(user_id)
        return added

    async def delete_bookmark(self, bookmark_id: int) -> bool:
        """Delete one of the current user's bookmarks."""
        return await self.store.remove(bookmark_id, self.context.user_id)
