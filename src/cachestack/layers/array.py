"""Plain dictionary layer, the fastest and simplest tier."""

from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions


class ArrayLayer(Layer):
    """
    Unbounded in-process dictionary.

    Entries never expire and are not shared between processes or
    between service instances. Useful as layer 0 and in tests.
    """

    def __init__(self, options: LayerOptions | None = None, namespace: str = "") -> None:
        super().__init__(options, namespace)
        self._data: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "array"

    async def get(self, key: str) -> str:
        namespaced = self._namespaced_key(key)
        if namespaced not in self._data:
            raise KeyNotFoundError(key)
        return self._data[namespaced]

    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        result = {}
        for key in keys:
            namespaced = self._namespaced_key(key)
            if namespaced in self._data:
                result[key] = self._data[namespaced]
        return result

    async def set(self, key: str, value: str) -> bool:
        self._data[self._namespaced_key(key)] = value
        return True

    async def set_multi(self, data: dict[str, str]) -> bool:
        for key, value in data.items():
            self._data[self._namespaced_key(key)] = value
        return True

    async def contains(self, key: str) -> bool:
        return self._namespaced_key(key) in self._data

    async def delete(self, key: str) -> bool:
        self._data.pop(self._namespaced_key(key), None)
        return True

    async def delete_multi(self, keys: list[str]) -> bool:
        for key in keys:
            self._data.pop(self._namespaced_key(key), None)
        return True

    async def flush(self) -> bool:
        prefix = self._namespaced_key("")
        for key in [k for k in self._data if k.startswith(prefix)]:
            del self._data[key]
        return True

    def size(self) -> int:
        """Get current number of entries."""
        return len(self._data)
