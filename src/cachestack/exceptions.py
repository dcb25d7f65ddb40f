"""Exception hierarchy for the cache service."""


class CacheError(Exception):
    """Base class for all cache service errors."""


class KeyNotFoundError(CacheError):
    """
    Raised by a layer when a key is absent.

    Distinct from a stored falsy value: an empty string is a valid
    wire value and must be returned, not reported as missing.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")


class InvalidConfigurationError(CacheError):
    """Raised when the cache configuration cannot be turned into a layer stack."""
