"""Backend gateway: auth, rows and live feed behind one object per browser."""
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from services.gateway.auth import DEFAULT_TIMEOUT, OAuthAuthClient, providers_from_settings
from services.gateway.realtime import RedisChangeFeed
from services.gateway.rows import SqlRowStore
from services.gateway.types import (
    AuthListener,
    Change,
    ChangeCallback,
    ChangeFilter,
    ListenerHandle,
    Order,
    Session,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)


class BackendGateway:
    """
    Concrete RemoteGateway.

    Writes are published on the live feed after they commit, so every other
    client subscribed to the same user sees them. A publish that fails (Redis
    down) does not fail the write.
    """

    def __init__(
        self,
        auth: OAuthAuthClient,
        rows: SqlRowStore,
        feed: RedisChangeFeed,
    ) -> None:
        self.auth = auth
        self.rows = rows
        self.feed = feed

    async def get_session(self) -> Session | None:
        return await self.auth.get_session()

    def on_auth_state_change(self, callback: AuthListener) -> ListenerHandle:
        return self.auth.on_auth_state_change(callback)

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        return await self.auth.sign_in_with_oauth(provider, redirect_to)

    async def exchange_code_for_session(self, code: str, state: str) -> Session:
        return await self.auth.exchange_code_for_session(code, state)

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Order | None = None,
    ) -> list[dict[str, Any]]:
        return await self.rows.select(table, filters, order)

    async def insert(self, table: str, record: Mapping[str, Any]) -> None:
        change = await self.rows.insert(table, record)
        await self._publish(change)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> None:
        for change in await self.rows.delete(table, filters):
            await self._publish(change)

    async def _publish(self, change: Change) -> None:
        if not await self.feed.publish(change):
            logger.warning(
                "change_not_published",
                extra={"table": change.table, "event": change.event.value},
            )

    async def subscribe(
        self,
        channel_key: str,
        change_filter: ChangeFilter,
        callback: ChangeCallback,
    ) -> SubscriptionHandle:
        return await self.feed.subscribe(channel_key, change_filter, callback)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        await self.feed.unsubscribe(handle)


class GatewayFactory:
    """
    Builds one BackendGateway per browser.

    Row store, change feed and HTTP client are shared; each gateway gets its
    own auth client keyed by the browser's client key, so sessions, pending
    sign-ins and auth listeners never cross browsers.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient | None = None,
        feed: RedisChangeFeed | None = None,
    ) -> None:
        self._providers = providers_from_settings(settings)
        self._session_factory = session_factory
        self._http = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self.rows = SqlRowStore(session_factory)
        self.feed = feed or RedisChangeFeed()

    def __call__(self, client_key: str) -> BackendGateway:
        return BackendGateway(
            auth=OAuthAuthClient(
                self._providers,
                self._session_factory,
                session_key=client_key,
                http_client=self._http,
            ),
            rows=self.rows,
            feed=self.feed,
        )

    async def aclose(self) -> None:
        """Close open feeds and the shared HTTP client."""
        await self.feed.close()
        await self._http.aclose()
