"""Cache service: one key/value API over an ordered stack of layers."""

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Mapping, Sequence

from cachestack.config import CacheConfig, load_cache_config
from cachestack.encoders import Encoder, JsonEncoder
from cachestack.exceptions import CacheError, InvalidConfigurationError, KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions
from cachestack.registry import create_encoder, get_layer_class

logger = logging.getLogger(__name__)


class CacheService:
    """
    Cache-aside orchestrator over a layer stack.

    Layer 0 is the fastest and is read first; the last layer is the
    authoritative store and is written first. Reads walk down the
    stack until a hit and copy the value back into every layer they
    passed. Writes walk up the stack from the last layer and stop
    early only if the last layer rejects the write.

    Values are encoded once on the way in and decoded once on the way
    out; layers only ever see wire values.

    Usage:
        cache = CacheService({
            "namespace": "mx",
            "layers": [
                {"layer_name": "memory", "layer_options": {"ttl": 60}},
                {"layer_name": "redis", "layer_options": {"url": "redis://localhost"}},
            ],
        })
        await cache.set("foo", {"bar": 1})
        value = await cache.get("foo")
    """

    def __init__(self, config: CacheConfig | Mapping[str, Any]) -> None:
        """
        Validate configuration and resolve every layer and encoder name.

        The layers themselves are instantiated on first use.

        Args:
            config: CacheConfig or equivalent mapping

        Raises:
            InvalidConfigurationError: If the configuration is incomplete,
                names an unknown layer or encoder, has invalid options, or
                enables negative caching with an encoder that cannot
                represent a miss
        """
        config = load_cache_config(config)

        layer_specs: list[tuple[type[Layer], LayerOptions]] = []
        for layer_config in config.layers:
            layer_class = get_layer_class(layer_config.layer_name)
            options = layer_class.validate_options(layer_config.layer_options)
            layer_specs.append((layer_class, options))

        self._initialize(
            encoder=create_encoder(config.encoder),
            namespace=config.namespace,
            negative_caching=any(options.cache_not_found_keys for _, options in layer_specs),
            layer_specs=layer_specs,
        )

    @classmethod
    def from_layers(
        cls,
        layers: Sequence[Layer],
        encoder: Encoder | None = None,
        namespace: str = "",
    ) -> "CacheService":
        """
        Build a service around already constructed layers.

        Args:
            layers: Layer stack, fastest first
            encoder: Encoder to use (JSON when omitted)
            namespace: Namespace applied to every layer

        Raises:
            InvalidConfigurationError: If layers is empty, or a layer caches
                misses with an encoder that cannot represent one
        """
        if not layers:
            raise InvalidConfigurationError("Layer stack must contain at least one layer")

        service = cls.__new__(cls)
        service._initialize(
            encoder=encoder or JsonEncoder(),
            namespace=namespace,
            negative_caching=any(layer.supports_negative_caching() for layer in layers),
            layer_stack=tuple(layers),
        )
        return service

    def _initialize(
        self,
        encoder: Encoder,
        namespace: str,
        negative_caching: bool,
        layer_specs: list[tuple[type[Layer], LayerOptions]] | None = None,
        layer_stack: tuple[Layer, ...] | None = None,
    ) -> None:
        """Set up state shared by both constructors."""
        if negative_caching and encoder.decode(encoder.encode(None)) is not None:
            raise InvalidConfigurationError(
                f"Encoder '{encoder.name}' cannot store a miss marker; "
                f"disable cache_not_found_keys or use another encoder"
            )

        self._encoder = encoder
        self._namespace = namespace
        self._layer_specs = layer_specs or []
        self._layer_stack: tuple[Layer, ...] | None = None
        self._build_lock = threading.Lock()

        if layer_stack is not None:
            for layer in layer_stack:
                layer.namespace = namespace
            self._layer_stack = layer_stack

    @property
    def encoder(self) -> Encoder:
        return self._encoder

    @property
    def namespace(self) -> str:
        return self._namespace

    @namespace.setter
    def namespace(self, namespace: str) -> None:
        self._namespace = namespace
        if self._layer_stack is not None:
            for layer in self._layer_stack:
                layer.namespace = namespace

    def get_namespace(self) -> str:
        return self.namespace

    def set_namespace(self, namespace: str) -> None:
        self.namespace = namespace

    @property
    def layer_stack(self) -> tuple[Layer, ...]:
        """Layer stack, built once on first access."""
        if self._layer_stack is None:
            with self._build_lock:
                if self._layer_stack is None:
                    self._layer_stack = self._build_layer_stack()
        return self._layer_stack

    def _build_layer_stack(self) -> tuple[Layer, ...]:
        stack = tuple(
            layer_class(options, namespace=self._namespace)
            for layer_class, options in self._layer_specs
        )
        logger.info(
            f"Built cache layer stack [{', '.join(layer.name for layer in stack)}] "
            f"with namespace '{self._namespace}'"
        )
        return stack

    # --- Reads ---

    async def get(self, key: str) -> Any:
        """
        Get a value, cascading through the stack.

        Args:
            key: Cache key

        Returns:
            Decoded value, or None if no layer has the key
        """
        value, found = await self._cascade_get(key)
        if not found:
            return None
        return self._encoder.decode(value)

    async def _cascade_get(self, key: str) -> tuple[str | None, bool]:
        """
        Walk the stack for a key and promote what was found.

        Returns:
            (wire value, found) where the wire value is None on a miss
        """
        stack = self.layer_stack
        value: str | None = None
        found = False
        level = 0

        for level, layer in enumerate(stack):
            try:
                value = await layer.get(key)
            except KeyNotFoundError:
                continue
            found = True
            break

        if found and level == 0:
            return value, True

        # Every layer above `level` missed; deepest first
        miss_marker: str | None = None
        for layer in reversed(stack[:level]):
            if found:
                await layer.set(key, value)
            elif layer.supports_negative_caching():
                if miss_marker is None:
                    miss_marker = self._encoder.encode(None)
                await layer.set(key, miss_marker)

        if found:
            logger.debug(f"Key '{key}' found in layer {level}, promoted to {level} shallower layer(s)")
        else:
            logger.debug(f"Key '{key}' missing from all {len(stack)} layers")
        return value, found

    async def get_multi(self, keys: Sequence[str]) -> dict[str, Any]:
        """
        Get several values at once.

        Each layer is asked only for the keys no shallower layer had.
        Values recovered from deeper layers are written back with one
        batch write per layer. Misses are not negative-cached here.

        Args:
            keys: Cache keys

        Returns:
            Dict mapping found keys to decoded values, in request order
        """
        unique_keys = list(dict.fromkeys(keys))
        raw = await self._cascade_get_multi(unique_keys)
        return {key: self._encoder.decode(raw[key]) for key in unique_keys if key in raw}

    async def _cascade_get_multi(self, keys: list[str]) -> dict[str, str]:
        stack = self.layer_stack
        found_per_level: list[dict[str, str]] = []
        missing = keys

        for layer in stack:
            found = await layer.get_multi(missing)
            found_per_level.append(found)
            missing = [key for key in missing if key not in found]
            if not missing:
                break

        recovered = found_per_level[-1]
        for level in range(len(found_per_level) - 2, -1, -1):
            if recovered:
                await stack[level].set_multi(recovered)
            recovered = {**found_per_level[level], **recovered}

        return recovered

    async def contains(self, key: str) -> bool:
        """Check every layer in order until one has the key. Never writes."""
        for layer in self.layer_stack:
            if await layer.contains(key):
                return True
        return False

    async def get_or_set(
        self,
        key: str,
        factory: Any,
    ) -> Any:
        """
        Get a value, or compute and cache it if missing.

        A negative-cached miss counts as present and returns None
        without calling the factory.

        Args:
            key: Cache key
            factory: Callable or coroutine function returning the value,
                or a plain value

        Returns:
            Cached or computed value
        """
        value, found = await self._cascade_get(key)
        if found:
            return self._encoder.decode(value)

        if inspect.iscoroutinefunction(factory):
            computed = await factory()
        elif callable(factory):
            computed = factory()
        else:
            computed = factory

        await self.set(key, computed)
        return computed

    # --- Writes ---

    async def set(self, key: str, value: Any) -> bool:
        """
        Store a value in every layer, deepest first.

        Returns:
            False if the authoritative (last) layer rejected the write,
            in which case no other layer was touched; True otherwise
        """
        encoded = self._encoder.encode(value)
        return await self._write_through(lambda layer: layer.set(key, encoded), f"key '{key}'")

    async def set_multi(self, data: Mapping[str, Any]) -> bool:
        """Store several values, deepest layer first, one batch per layer."""
        encoded = {key: self._encoder.encode(value) for key, value in data.items()}
        return await self._write_through(lambda layer: layer.set_multi(encoded), f"{len(encoded)} keys")

    async def _write_through(
        self,
        write: Callable[[Layer], Awaitable[bool]],
        description: str,
    ) -> bool:
        stack = self.layer_stack
        deepest = len(stack) - 1

        for level in range(deepest, -1, -1):
            layer = stack[level]
            accepted = await write(layer)
            if level == 0:
                return True
            if not accepted:
                if level == deepest:
                    logger.warning(
                        f"Authoritative layer {layer.name} rejected write of {description}; "
                        f"shallower layers left untouched"
                    )
                    return False
                logger.warning(f"Layer {level} ({layer.name}) rejected write of {description}")

        return True

    async def delete(self, key: str) -> bool:
        """Delete a key from every layer."""
        return await self._fan_out("delete", lambda layer: layer.delete(key))

    async def delete_multi(self, keys: Sequence[str]) -> bool:
        """Delete several keys from every layer."""
        key_list = list(keys)
        return await self._fan_out("delete_multi", lambda layer: layer.delete_multi(key_list))

    async def flush(self) -> bool:
        """Clear this namespace from every layer."""
        return await self._fan_out("flush", lambda layer: layer.flush())

    async def _fan_out(
        self,
        operation: str,
        call: Callable[[Layer], Awaitable[bool]],
    ) -> bool:
        """
        Run an operation on every layer concurrently.

        A layer that fails or raises does not stop the others. The
        result is always True once the operation has been issued.
        """
        stack = self.layer_stack
        results = await asyncio.gather(*(call(layer) for layer in stack), return_exceptions=True)

        for level, (layer, result) in enumerate(zip(stack, results)):
            if isinstance(result, BaseException):
                logger.error(f"{operation} failed on layer {level} ({layer.name}): {result}")
            elif result is False:
                logger.warning(f"{operation} reported failure on layer {level} ({layer.name})")

        return True

    # --- Lifecycle ---

    async def close(self) -> None:
        """Close every built layer."""
        if self._layer_stack is None:
            return
        for layer in self._layer_stack:
            await layer.close()

    async def health_check(self) -> dict[str, Any]:
        """
        Collect health info from every layer.

        Returns:
            Dict with namespace, encoder and per-layer status
        """
        return {
            "namespace": self._namespace,
            "encoder": self._encoder.name,
            "layers": [await layer.health_check() for layer in self.layer_stack],
        }


class CacheAware:
    """Mixin for classes that receive a CacheService by injection."""

    _cache_service: CacheService | None = None

    @property
    def cache_service(self) -> CacheService:
        if self._cache_service is None:
            raise CacheError(f"{type(self).__name__} has no cache service")
        return self._cache_service

    @cache_service.setter
    def cache_service(self, cache_service: CacheService) -> None:
        self._cache_service = cache_service
