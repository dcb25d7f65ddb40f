"""Factory for the process-wide cache service."""

import logging
from typing import Any, Mapping

from cachestack.config import CacheConfig, settings
from cachestack.layers.memory import MemoryLayer
from cachestack.service import CacheService

logger = logging.getLogger(__name__)

# Global cache service instance
_service_instance: CacheService | None = None


def create_cache_service(
    config: CacheConfig | Mapping[str, Any] | None = None,
) -> CacheService:
    """
    Create a cache service.

    Args:
        config: Explicit configuration; defaults to the environment
            (CACHESTACK_NAMESPACE, CACHESTACK_ENCODER, CACHESTACK_LAYERS_JSON)

    Returns:
        CacheService instance

    Raises:
        InvalidConfigurationError: If the configuration is invalid
    """
    if config is None:
        config = settings.cache_config()
    return CacheService(config)


def get_cache_service() -> CacheService:
    """
    Get the global cache service.

    Creates the service on first access using configuration settings.
    This is the recommended way to access the cache in application code.
    """
    global _service_instance

    if _service_instance is None:
        _service_instance = create_cache_service()
        logger.info(f"Initialized cache service with {len(_service_instance.layer_stack)} layer(s)")

    return _service_instance


async def initialize_cache_service() -> CacheService:
    """
    Initialize the global service and start background work.

    Call this during application startup: it builds the layer stack
    and starts expiry cleanup for memory layers.
    """
    service = get_cache_service()

    for layer in service.layer_stack:
        if isinstance(layer, MemoryLayer):
            await layer.start_cleanup_task()

    return service


async def shutdown_cache_service() -> None:
    """
    Close the global service's layers and forget it.

    Call this during application shutdown for clean teardown.
    """
    global _service_instance

    if _service_instance is not None:
        await _service_instance.close()
        _service_instance = None
        logger.info("Cache service shutdown complete")


def reset_cache_service() -> None:
    """
    Reset the global service without closing it.

    Useful for testing or when configuration changes.
    """
    global _service_instance
    _service_instance = None
