"""One SessionController per browser."""
import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable

from services.gateway.protocol import RemoteGateway
from services.session_controller import SessionController

logger = logging.getLogger(__name__)

GatewayForClient = Callable[[str], RemoteGateway]


class ClientSessions:
    """
    Registry of live controllers keyed by an opaque per-browser client key.

    Each browser gets its own gateway (and so its own auth session), context
    and change subscription. Controllers start lazily on first use. Past
    `max_clients` the least recently used one is torn down; its persisted
    session survives, so the browser is restored on its next request.
    """

    def __init__(
        self,
        gateway_for_client: GatewayForClient,
        redirect_url: str,
        provider: str = "google",
        max_clients: int = 1000,
    ) -> None:
        self._gateway_for_client = gateway_for_client
        self._redirect_url = redirect_url
        self._provider = provider
        self._max_clients = max_clients
        self._controllers: OrderedDict[str, asyncio.Task[SessionController]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, client_key: str) -> bool:
        return client_key in self._controllers

    async def get(self, client_key: str) -> SessionController:
        """The browser's controller, started (and its session restored) if needed."""
        starting = self._controllers.get(client_key)
        if starting is None:
            # Registered before the first await so concurrent requests share it
            starting = asyncio.ensure_future(self._start(client_key))
            self._controllers[client_key] = starting
            await self._evict()
        else:
            self._controllers.move_to_end(client_key)

        try:
            return await starting
        except Exception:
            if self._controllers.get(client_key) is starting:
                del self._controllers[client_key]
            raise

    async def _start(self, client_key: str) -> SessionController:
        controller = SessionController(
            self._gateway_for_client(client_key),
            redirect_url=self._redirect_url,
            provider=self._provider,
        )
        await controller.initialize()
        return controller

    async def _evict(self) -> None:
        while len(self._controllers) > self._max_clients:
            _, starting = self._controllers.popitem(last=False)
            logger.info("client_session_evicted", extra={"clients": len(self._controllers)})
            await self._stop(starting)

    async def discard(self, client_key: str) -> None:
        """Tear down a browser's controller, e.g. after sign-out."""
        starting = self._controllers.pop(client_key, None)
        if starting is not None:
            await self._stop(starting)

    async def _stop(self, starting: asyncio.Task[SessionController]) -> None:
        try:
            controller = await starting
        except Exception:
            logger.exception("client_session_start_failed")
            return
        await controller.teardown()

    async def aclose(self) -> None:
        """Tear down every controller."""
        while self._controllers:
            _, starting = self._controllers.popitem(last=False)
            await self._stop(starting)
