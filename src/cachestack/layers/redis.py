"""Redis layer for a cache shared across processes and hosts."""

import logging
import re
from typing import Any

import redis.asyncio as aioredis

from cachestack.config import settings
from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisLayerOptions(LayerOptions):
    """
    Options for RedisLayer.

    Attributes:
        url: Redis connection URL (defaults to CACHESTACK_REDIS_URL)
        ttl: Seconds before keys expire, 0 = never (defaults to
            CACHESTACK_REDIS_TTL_SECONDS)
        max_connections: Maximum connections in pool
        socket_timeout: Socket timeout in seconds
        socket_connect_timeout: Connection timeout in seconds
    """

    url: str | None = None
    ttl: int | None = None
    max_connections: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0


class RedisLayer(Layer):
    """
    Redis-backed layer for distributed caching.

    Best for:
    - Multi-instance deployments
    - Shared state across services
    - Values that should survive a process restart

    The connection is opened lazily on first use. Backend errors are
    logged and reported as misses (reads) or failed writes.
    """

    Options = RedisLayerOptions

    def __init__(self, options: RedisLayerOptions | None = None, namespace: str = "") -> None:
        super().__init__(options, namespace)
        self._url = self.options.url or settings.redis_url
        self._ttl = self.options.ttl if self.options.ttl is not None else settings.redis_ttl_seconds
        self._client: Any = None
        self._connected = False

    @property
    def name(self) -> str:
        return "redis"

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        """
        Connect to Redis.

        Returns:
            True if connected successfully
        """
        if self._connected and self._client:
            return True

        try:
            self._client = aioredis.from_url(
                self._url,
                max_connections=self.options.max_connections,
                socket_timeout=self.options.socket_timeout,
                socket_connect_timeout=self.options.socket_connect_timeout,
                decode_responses=True,
            )

            # Test connection
            await self._client.ping()
            self._connected = True
            logger.info(f"Connected to Redis at {self._url}")
            return True

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._connected = False
            return False

    async def _ensure_connected(self) -> bool:
        """Ensure we're connected to Redis."""
        if not self._connected:
            return await self.connect()
        return True

    async def get(self, key: str) -> str:
        value = None
        if await self._ensure_connected():
            try:
                value = await self._client.get(self._namespaced_key(key))
            except Exception as e:
                logger.error(f"Redis GET error for {key}: {e}")

        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        if not keys or not await self._ensure_connected():
            return {}

        try:
            values = await self._client.mget([self._namespaced_key(k) for k in keys])
        except Exception as e:
            logger.error(f"Redis MGET error: {e}")
            return {}

        return {key: value for key, value in zip(keys, values) if value is not None}

    async def set(self, key: str, value: str) -> bool:
        if not await self._ensure_connected():
            return False

        try:
            if self._ttl > 0:
                await self._client.setex(self._namespaced_key(key), self._ttl, value)
            else:
                await self._client.set(self._namespaced_key(key), value)
            return True
        except Exception as e:
            logger.error(f"Redis SET error for {key}: {e}")
            return False

    async def set_multi(self, data: dict[str, str]) -> bool:
        if not data:
            return True
        if not await self._ensure_connected():
            return False

        try:
            pipe = self._client.pipeline()
            for key, value in data.items():
                if self._ttl > 0:
                    pipe.setex(self._namespaced_key(key), self._ttl, value)
                else:
                    pipe.set(self._namespaced_key(key), value)
            responses = await pipe.execute()
            return all(responses)
        except Exception as e:
            logger.error(f"Redis MSET error: {e}")
            return False

    async def contains(self, key: str) -> bool:
        if not await self._ensure_connected():
            return False

        try:
            return await self._client.exists(self._namespaced_key(key)) > 0
        except Exception as e:
            logger.error(f"Redis EXISTS error for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        return await self.delete_multi([key])

    async def delete_multi(self, keys: list[str]) -> bool:
        if not keys:
            return True
        if not await self._ensure_connected():
            return False

        try:
            await self._client.delete(*[self._namespaced_key(k) for k in keys])
            return True
        except Exception as e:
            logger.error(f"Redis DELETE error: {e}")
            return False

    async def flush(self) -> bool:
        if not await self._ensure_connected():
            return False

        search_pattern = _GLOB_SPECIAL.sub(r"\\\1", self._namespaced_key("")) + "*"
        try:
            # SCAN instead of KEYS so large keyspaces do not block the server
            keys = [key async for key in self._client.scan_iter(match=search_pattern)]
            if keys:
                await self._client.delete(*keys)
            logger.debug(f"Flushed {len(keys)} Redis keys matching {search_pattern}")
            return True
        except Exception as e:
            logger.error(f"Redis FLUSH error: {e}")
            return False

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._connected = False

    async def health_check(self) -> dict[str, Any]:
        """Return health status with Redis info."""
        health = await super().health_check()
        if not await self._ensure_connected():
            health.update(connected=False, error="Not connected to Redis")
            return health

        try:
            info = await self._client.info("server")
            health.update(
                connected=True,
                redis_version=info.get("redis_version"),
                total_keys=await self._client.dbsize(),
            )
        except Exception as e:
            health.update(connected=self._connected, error=str(e))
        return health
