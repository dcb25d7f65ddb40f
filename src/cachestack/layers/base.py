"""Abstract base class for cache layers."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping

from pydantic import BaseModel, ConfigDict, ValidationError

from cachestack.exceptions import InvalidConfigurationError


class LayerOptions(BaseModel):
    """
    Options shared by every layer.

    Attributes:
        cache_not_found_keys: Store a miss marker in this layer when a
            key is absent from every deeper layer
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    cache_not_found_keys: bool = False


class Layer(ABC):
    """
    Abstract base class for one tier of the cache stack.

    A layer stores wire values under namespaced keys. The cache
    service never prefixes keys itself; each layer applies
    ``namespace:key`` so backends can add their own key rules.

    Implement this class to add new storage backends.
    """

    Options: ClassVar[type[LayerOptions]] = LayerOptions

    def __init__(self, options: LayerOptions | None = None, namespace: str = "") -> None:
        """
        Initialize the layer.

        Args:
            options: Validated options, defaults when omitted
            namespace: Key namespace for this layer
        """
        self.options = options if options is not None else self.Options()
        self._namespace = namespace

    @classmethod
    def validate_options(cls, raw: Mapping[str, Any]) -> LayerOptions:
        """
        Validate raw layer options.

        Raises:
            InvalidConfigurationError: If an option is unknown or malformed
        """
        try:
            return cls.Options.model_validate(dict(raw))
        except ValidationError as e:
            first = e.errors()[0]
            loc = ".".join(str(part) for part in first.get("loc", ()))
            if first.get("type") == "missing":
                message = f"Missing configuration parameter: {loc}"
            else:
                message = f"Invalid configuration parameter {loc}: {first.get('msg')}"
            raise InvalidConfigurationError(message) from e

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this layer type.

        Returns:
            Layer name (e.g., 'array', 'redis')
        """
        ...

    @property
    def namespace(self) -> str:
        return self._namespace

    @namespace.setter
    def namespace(self, namespace: str) -> None:
        self._namespace = namespace

    def supports_negative_caching(self) -> bool:
        """Whether misses from deeper layers should be cached here."""
        return self.options.cache_not_found_keys

    def _namespaced_key(self, key: str) -> str:
        """Get prefixed key."""
        return f"{self._namespace}:{key}"

    def _strip_namespace(self, key: str) -> str:
        """Remove the prefix added by _namespaced_key."""
        return key[len(self._namespace) + 1:]

    @abstractmethod
    async def get(self, key: str) -> str:
        """
        Get a wire value.

        Args:
            key: Cache key

        Returns:
            Stored wire value (possibly empty)

        Raises:
            KeyNotFoundError: If the key is absent
        """
        ...

    @abstractmethod
    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        """
        Get multiple wire values.

        Args:
            keys: List of cache keys

        Returns:
            Dict mapping keys to values (missing keys omitted)
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> bool:
        """
        Store a wire value.

        Returns:
            True if the backend accepted the write
        """
        ...

    @abstractmethod
    async def set_multi(self, data: dict[str, str]) -> bool:
        """
        Store multiple wire values.

        Returns:
            True if every write was accepted
        """
        ...

    @abstractmethod
    async def contains(self, key: str) -> bool:
        """Check if a key exists in this layer."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Missing keys are not an error."""
        ...

    @abstractmethod
    async def delete_multi(self, keys: list[str]) -> bool:
        """Delete several keys. Missing keys are not an error."""
        ...

    @abstractmethod
    async def flush(self) -> bool:
        """Remove every key in this layer's namespace."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None

    async def health_check(self) -> dict[str, Any]:
        """
        Perform a health check on the layer.

        Returns:
            Dict with health status info
        """
        return {
            "layer": self.name,
            "namespace": self._namespace,
            "negative_caching": self.supports_negative_caching(),
        }
