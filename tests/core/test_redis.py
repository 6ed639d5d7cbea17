"""
Tests for the Redis client module.

Note: Basic Redis operations are not tested against a live server here as they
just wrap the redis.asyncio library. We test the fallback behavior, which is
what keeps the app usable without Redis.
"""
from core.redis import RedisClient, get_redis_client, set_redis_client


class TestRedisClientDisabled:
    """Tests for disabled Redis client."""

    async def test__disabled_client__returns_false_on_ping(self) -> None:
        """Disabled client returns False on ping."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert client.is_connected is False
        assert await client.ping() is False

        await client.close()

    async def test__disabled_client__returns_false_on_publish(self) -> None:
        """Disabled client returns False on publish."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert await client.publish("realtime:bookmarks", "{}") is False

        await client.close()

    async def test__disabled_client__has_no_pubsub(self) -> None:
        """Disabled client hands out no pub/sub connection."""
        client = RedisClient("redis://localhost:6379", enabled=False)
        await client.connect()

        assert client.pubsub() is None


class TestRedisClientUnavailable:
    """Tests for Redis client when server is unavailable."""

    async def test__unavailable_server__connect_fails_gracefully(self) -> None:
        """Client handles unavailable server gracefully."""
        # Use invalid port
        client = RedisClient("redis://localhost:59999", enabled=True)
        await client.connect()

        # Should not be connected but should not raise
        assert client.is_connected is False

        await client.close()

    async def test__unavailable_server__operations_fail_gracefully(self) -> None:
        """Operations return safe defaults when server unavailable."""
        client = RedisClient("redis://localhost:59999", enabled=True)
        await client.connect()

        assert await client.ping() is False
        assert await client.publish("realtime:bookmarks", "{}") is False
        assert client.pubsub() is None

        await client.close()


class TestGlobalClient:
    """Tests for the process-wide client slot."""

    def test__set_redis_client__round_trips(self) -> None:
        """The global slot holds whatever was set last."""
        original = get_redis_client()
        client = RedisClient("redis://localhost:6379", enabled=False)
        try:
            set_redis_client(client)
            assert get_redis_client() is client
        finally:
            set_redis_client(original)
