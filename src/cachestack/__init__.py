"""
Multi-tier cache-aside service.

A CacheService presents one async key/value API over an ordered stack
of layers (in-process dict, bounded memory cache, Redis, Memcached,
SQL table), reading fastest-first with promotion and writing
deepest-first.
"""

from cachestack.config import CacheConfig, LayerConfig, Settings, get_settings
from cachestack.encoders import Encoder, JsonEncoder, NoneEncoder, PickleEncoder
from cachestack.exceptions import CacheError, InvalidConfigurationError, KeyNotFoundError
from cachestack.factory import (
    create_cache_service,
    get_cache_service,
    initialize_cache_service,
    reset_cache_service,
    shutdown_cache_service,
)
from cachestack.layers import (
    ArrayLayer,
    Layer,
    LayerOptions,
    MemcachedLayer,
    MemoryLayer,
    RedisLayer,
    SqlLayer,
)
from cachestack.registry import register_encoder, register_layer
from cachestack.service import CacheAware, CacheService

__version__ = "0.1.0"
__all__ = [
    "CacheService",
    "CacheAware",
    "CacheConfig",
    "LayerConfig",
    "Settings",
    "get_settings",
    "Encoder",
    "JsonEncoder",
    "NoneEncoder",
    "PickleEncoder",
    "CacheError",
    "InvalidConfigurationError",
    "KeyNotFoundError",
    "Layer",
    "LayerOptions",
    "ArrayLayer",
    "MemoryLayer",
    "RedisLayer",
    "MemcachedLayer",
    "SqlLayer",
    "register_layer",
    "register_encoder",
    "create_cache_service",
    "get_cache_service",
    "initialize_cache_service",
    "shutdown_cache_service",
    "reset_cache_service",
]
