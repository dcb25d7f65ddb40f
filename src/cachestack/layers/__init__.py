"""Cache layers: one storage tier each, fastest first in a stack."""

from cachestack.layers.array import ArrayLayer
from cachestack.layers.base import Layer, LayerOptions
from cachestack.layers.memcached import MemcachedLayer
from cachestack.layers.memory import MemoryLayer
from cachestack.layers.redis import RedisLayer
from cachestack.layers.sql import SqlLayer

__all__ = [
    "Layer",
    "LayerOptions",
    "ArrayLayer",
    "MemoryLayer",
    "RedisLayer",
    "MemcachedLayer",
    "SqlLayer",
]
