"""Bridge from backend row changes to a local refresh."""
import logging
from functools import partial

from services.bookmark_store import BookmarkStore
from services.errors import GatewayError, SubscriptionError
from services.gateway.protocol import RemoteGateway
from services.gateway.rows import BOOKMARKS_TABLE
from services.gateway.types import Change, ChangeFilter, SubscriptionHandle

logger = logging.getLogger(__name__)


def channel_key(user_id: str) -> str:
    """Name of the per-user live feed."""
    return f"{BOOKMARKS_TABLE}-{user_id}"


class ChangeSubscription:
    """
    Opens and closes per-user live feeds.

    Every matching change triggers a full refresh; the change payload is never
    merged into the collection.
    """

    def __init__(self, gateway: RemoteGateway, store: BookmarkStore) -> None:
        self._gateway = gateway
        self._store = store

    async def open(self, user_id: str) -> SubscriptionHandle | None:
        """
        Start a feed for all bookmark changes owned by `user_id`.

        Returns:
            The handle, or None if the feed could not be established. A failed
            feed is not retried; the view just stops updating by itself.
        """
        change_filter = ChangeFilter(table=BOOKMARKS_TABLE, column="user_id", value=user_id)
        try:
            return await self._gateway.subscribe(
                channel_key(user_id),
                change_filter,
                partial(self.dispatch, user_id),
            )
        except SubscriptionError as e:
            logger.warning("subscription_unavailable", extra={"user_id": user_id, "error": str(e)})
            return None

    async def dispatch(self, user_id: str, change: Change) -> None:
        """Handle one change for `user_id`."""
        logger.debug(
            "change_received",
            extra={"user_id": user_id, "event": change.event.value},
        )
        await self._store.refresh(user_id)

    async def close(self, handle: SubscriptionHandle | None) -> None:
        """Release a feed. None or already-closed handles are a no-op."""
        if handle is None or handle.closed:
            return
        try:
            await self._gateway.unsubscribe(handle)
        except GatewayError as e:
            logger.warning("Closing subscription %s failed: %s", handle.channel_key, e)
