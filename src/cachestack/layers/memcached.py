"""Memcached layer built on pymemcache."""

import asyncio
import hashlib
import logging
from typing import Any

from pymemcache.client.hash import HashClient

from cachestack.config import settings
from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions

logger = logging.getLogger(__name__)

# Memcached rejects keys longer than this
MAX_KEY_LENGTH = 250


class MemcachedLayerOptions(LayerOptions):
    """
    Options for MemcachedLayer.

    Attributes:
        servers: "host:port" entries (defaults to CACHESTACK_MEMCACHED_SERVERS)
        ttl: Seconds before keys expire (0 = never)
        connect_timeout: Connection timeout in seconds
        timeout: Socket timeout in seconds
    """

    servers: list[str] | None = None
    ttl: int = 0
    connect_timeout: float | None = None
    timeout: float | None = None


def _parse_server(server: str) -> tuple[str, int]:
    host, _, port = server.rpartition(":")
    if not host:
        return server, 11211
    return host, int(port)


class MemcachedLayer(Layer):
    """
    Memcached-backed layer.

    pymemcache is a blocking client, so every call runs in a worker
    thread. Memcached cannot enumerate keys: flush() clears the
    whole server, not just this namespace.
    """

    Options = MemcachedLayerOptions

    def __init__(self, options: MemcachedLayerOptions | None = None, namespace: str = "") -> None:
        super().__init__(options, namespace)
        self._servers = [_parse_server(s) for s in (self.options.servers or settings.memcached_servers)]
        self._client: HashClient | None = None

    @property
    def name(self) -> str:
        return "memcached"

    def _get_client(self) -> HashClient:
        if self._client is None:
            self._client = HashClient(
                self._servers,
                connect_timeout=self.options.connect_timeout,
                timeout=self.options.timeout,
            )
        return self._client

    def _namespaced_key(self, key: str) -> str:
        full_key = super()._namespaced_key(key)
        if len(full_key.encode("utf-8")) > MAX_KEY_LENGTH:
            return hashlib.md5(full_key.encode("utf-8")).hexdigest()
        return full_key

    @staticmethod
    def _to_text(value: bytes | str) -> str:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def get(self, key: str) -> str:
        value = None
        try:
            value = await asyncio.to_thread(self._get_client().get, self._namespaced_key(key))
        except Exception as e:
            logger.error(f"Memcached GET error for {key}: {e}")

        if value is None:
            raise KeyNotFoundError(key)
        return self._to_text(value)

    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        if not keys:
            return {}

        by_namespaced = {self._namespaced_key(k): k for k in keys}
        try:
            found = await asyncio.to_thread(self._get_client().get_many, list(by_namespaced))
        except Exception as e:
            logger.error(f"Memcached GET_MANY error: {e}")
            return {}

        return {by_namespaced[k]: self._to_text(v) for k, v in found.items() if k in by_namespaced}

    async def set(self, key: str, value: str) -> bool:
        try:
            return bool(
                await asyncio.to_thread(
                    self._get_client().set,
                    self._namespaced_key(key),
                    value,
                    expire=self.options.ttl,
                    noreply=False,
                )
            )
        except Exception as e:
            logger.error(f"Memcached SET error for {key}: {e}")
            return False

    async def set_multi(self, data: dict[str, str]) -> bool:
        if not data:
            return True

        values = {self._namespaced_key(k): v for k, v in data.items()}
        try:
            failed = await asyncio.to_thread(
                self._get_client().set_many,
                values,
                expire=self.options.ttl,
                noreply=False,
            )
        except Exception as e:
            logger.error(f"Memcached SET_MANY error: {e}")
            return False

        if failed:
            logger.warning(f"Memcached rejected {len(failed)} of {len(values)} keys")
        return not failed

    async def contains(self, key: str) -> bool:
        try:
            await self.get(key)
        except KeyNotFoundError:
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._get_client().delete, self._namespaced_key(key), noreply=False)
            return True
        except Exception as e:
            logger.error(f"Memcached DELETE error for {key}: {e}")
            return False

    async def delete_multi(self, keys: list[str]) -> bool:
        if not keys:
            return True

        try:
            await asyncio.to_thread(
                self._get_client().delete_many,
                [self._namespaced_key(k) for k in keys],
                noreply=False,
            )
            return True
        except Exception as e:
            logger.error(f"Memcached DELETE_MANY error: {e}")
            return False

    async def flush(self) -> bool:
        logger.warning(
            f"Memcached flush clears every key on {len(self._servers)} server(s), "
            f"not only namespace '{self.namespace}'"
        )
        try:
            await asyncio.to_thread(self._get_client().flush_all, noreply=False)
            return True
        except Exception as e:
            logger.error(f"Memcached FLUSH error: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            try:
                await asyncio.to_thread(self._client.close)
            except Exception as e:
                logger.error(f"Error closing Memcached client: {e}")
            finally:
                self._client = None

    async def health_check(self) -> dict[str, Any]:
        health = await super().health_check()
        health["servers"] = [f"{host}:{port}" for host, port in self._servers]
        return health
