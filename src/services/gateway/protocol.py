"""The interface the sync controller consumes from the backend."""
from collections.abc import Mapping
from typing import Any, Protocol

from services.gateway.types import (
    AuthListener,
    ChangeCallback,
    ChangeFilter,
    ListenerHandle,
    Order,
    Session,
    SubscriptionHandle,
)


class RemoteGateway(Protocol):
    """
    Authentication, row storage and change notification for one client.

    Failures are raised as the GatewayError subclasses in services.errors;
    callers decide whether to swallow them.
    """

    async def get_session(self) -> Session | None: ...

    def on_auth_state_change(self, callback: AuthListener) -> ListenerHandle: ...

    async def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str: ...

    async def exchange_code_for_session(self, code: str, state: str) -> Session: ...

    async def sign_out(self) -> None: ...

    async def select(
        self,
        table: str,
        filters: Mapping[str, Any],
        order: Order | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, record: Mapping[str, Any]) -> None: ...

    async def delete(self, table: str, filters: Mapping[str, Any]) -> None: ...

    async def subscribe(
        self,
        channel_key: str,
        change_filter: ChangeFilter,
        callback: ChangeCallback,
    ) -> SubscriptionHandle: ...

    async def unsubscribe(self, handle: SubscriptionHandle) -> None: ...
