"""Live change feed over Redis pub/sub."""
import asyncio
import contextlib
import logging
from dataclasses import dataclass

from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from core.redis import RedisClient, get_redis_client
from services.errors import SubscriptionError
from services.gateway.types import Change, ChangeCallback, ChangeFilter, SubscriptionHandle

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "realtime:"


def channel_name(table: str) -> str:
    """Redis channel carrying every change for a table."""
    return f"{CHANNEL_PREFIX}{table}"


@dataclass
class _Listener:
    handle: SubscriptionHandle
    pubsub: PubSub
    task: asyncio.Task


class RedisChangeFeed:
    """
    Publishes committed row changes and fans them out to filtered subscribers.

    All changes for a table share one channel; each subscription filters on its
    own. If Redis is unavailable at subscribe time the subscription fails with
    SubscriptionError. A connection lost later ends that feed and marks its
    handle closed; nothing here retries.
    """

    def __init__(self, redis_client: RedisClient | None = None) -> None:
        self._redis_client = redis_client
        self._listeners: dict[str, _Listener] = {}

    def _client(self) -> RedisClient | None:
        return self._redis_client or get_redis_client()

    async def publish(self, change: Change) -> bool:
        """Publish a change. Returns False when Redis is unavailable."""
        client = self._client()
        if client is None or not client.is_connected:
            logger.warning("redis_unavailable", extra={"operation": "publish"})
            return False
        return await client.publish(channel_name(change.table), change.to_json())

    async def subscribe(
        self,
        channel_key: str,
        change_filter: ChangeFilter,
        callback: ChangeCallback,
    ) -> SubscriptionHandle:
        """Open a feed delivering matching changes to `callback`."""
        client = self._client()
        pubsub = client.pubsub() if client is not None else None
        if pubsub is None:
            raise SubscriptionError(f"Live feed unavailable for {channel_key}")

        try:
            await pubsub.subscribe(channel_name(change_filter.table))
        except RedisError as e:
            with contextlib.suppress(RedisError):
                await pubsub.aclose()
            raise SubscriptionError(f"Could not subscribe {channel_key}: {e}") from e

        handle = SubscriptionHandle(channel_key=channel_key, filter=change_filter)
        task = asyncio.create_task(
            self._listen(pubsub, handle, callback),
            name=f"realtime:{channel_key}",
        )
        self._listeners[handle.id] = _Listener(handle=handle, pubsub=pubsub, task=task)
        logger.info("subscription_opened", extra={"channel": channel_key})
        return handle

    async def _listen(
        self,
        pubsub: PubSub,
        handle: SubscriptionHandle,
        callback: ChangeCallback,
    ) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    change = Change.from_json(message["data"])
                except (ValueError, KeyError) as e:
                    logger.warning("Dropping malformed change message: %s", e)
                    continue
                if not handle.filter.matches(change):
                    continue
                try:
                    await callback(change)
                except Exception:
                    logger.exception(
                        "subscription_callback_failed",
                        extra={"channel": handle.channel_key},
                    )
        except (RedisError, OSError) as e:
            logger.warning("Live feed %s lost: %s", handle.channel_key, e)
        else:
            logger.warning("Live feed %s ended", handle.channel_key)

        # Not reached when cancelled by unsubscribe(). Mark the handle closed so
        # the owner opens a new feed instead of holding on to a dead one.
        handle.closed = True
        listener = self._listeners.pop(handle.id, None)
        if listener is not None:
            try:
                await listener.pubsub.aclose()
            except RedisError as e:
                logger.warning("Closing live feed %s failed: %s", handle.channel_key, e)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Close a feed. Closed or unknown handles are a no-op."""
        if handle.closed:
            return
        handle.closed = True
        listener = self._listeners.pop(handle.id, None)
        if listener is None:
            return

        listener.task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await listener.task
        try:
            await listener.pubsub.unsubscribe()
            await listener.pubsub.aclose()
        except RedisError as e:
            logger.warning("Closing live feed %s failed: %s", handle.channel_key, e)
        logger.info("subscription_closed", extra={"channel": handle.channel_key})

    async def close(self) -> None:
        """Close every open feed."""
        for listener in list(self._listeners.values()):
            await self.unsubscribe(listener.handle)

    @property
    def open_count(self) -> int:
        """Number of feeds currently open."""
        return len(self._listeners)
