"""Name-to-implementation registries for layers and encoders."""

import logging
from typing import Callable

from cachestack.encoders import Encoder, JsonEncoder, NoneEncoder, PickleEncoder
from cachestack.exceptions import InvalidConfigurationError
from cachestack.layers import ArrayLayer, Layer, MemcachedLayer, MemoryLayer, RedisLayer, SqlLayer

logger = logging.getLogger(__name__)

_layers: dict[str, type[Layer]] = {
    "array": ArrayLayer,
    "memory": MemoryLayer,
    "redis": RedisLayer,
    "memcached": MemcachedLayer,
    "sql": SqlLayer,
}

_encoders: dict[str, Callable[[], Encoder]] = {
    "json": JsonEncoder,
    "pickle": PickleEncoder,
    "serial": PickleEncoder,
    "none": NoneEncoder,
}


def _normalize(name: str) -> str:
    return name.strip().lower()


def register_layer(name: str, layer_class: type[Layer]) -> None:
    """
    Register a layer implementation under a configuration name.

    Args:
        name: Name used as ``layer_name`` in configuration
        layer_class: Layer subclass to instantiate
    """
    key = _normalize(name)
    if key in _layers:
        logger.warning(f"Replacing layer registration for '{key}'")
    _layers[key] = layer_class


def register_encoder(name: str, factory: Callable[[], Encoder]) -> None:
    """
    Register an encoder under a configuration name.

    Args:
        name: Name used as ``encoder`` in configuration
        factory: Zero-argument callable returning an Encoder
    """
    key = _normalize(name)
    if key in _encoders:
        logger.warning(f"Replacing encoder registration for '{key}'")
    _encoders[key] = factory


def get_layer_class(name: str) -> type[Layer]:
    """
    Resolve a layer name.

    Raises:
        InvalidConfigurationError: If no layer is registered under name
    """
    try:
        return _layers[_normalize(name)]
    except KeyError:
        raise InvalidConfigurationError(f"Unknown layer: {name}") from None


def create_encoder(name: str) -> Encoder:
    """
    Resolve an encoder name and instantiate it.

    Raises:
        InvalidConfigurationError: If no encoder is registered under name
    """
    try:
        factory = _encoders[_normalize(name)]
    except KeyError:
        raise InvalidConfigurationError(f"Unknown encoder: {name}") from None
    return factory()


def layer_names() -> list[str]:
    """Registered layer names, sorted."""
    return sorted(_layers)


def encoder_names() -> list[str]:
    """Registered encoder names, sorted."""
    return sorted(_encoders)
