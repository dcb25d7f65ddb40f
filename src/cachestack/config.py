"""Configuration module using Pydantic Settings."""

import json
from functools import lru_cache
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from cachestack.exceptions import InvalidConfigurationError


class LayerConfig(BaseModel):
    """One entry of the layer stack: which layer to build and its options."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    layer_name: str = Field(
        validation_alias=AliasChoices("layer_name", "adapter_name"),
    )
    layer_options: dict[str, Any] = Field(
        validation_alias=AliasChoices("layer_options", "adapter_options"),
    )


class CacheConfig(BaseModel):
    """
    Static description of a cache service.

    Attributes:
        namespace: Prefix applied by every layer to every key
        encoder: Registered encoder name
        layers: Layer stack, fastest first
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = ""
    encoder: str = "json"
    layers: list[LayerConfig] = Field(min_length=1)


def _format_validation_error(error: ValidationError) -> str:
    """Turn the first pydantic error into a readable configuration message."""
    first = error.errors()[0]
    loc = [str(part) for part in first.get("loc", ())]
    field_name = loc[-1] if loc else "configuration"
    if first.get("type") == "missing":
        if field_name == "layers":
            return "Missing required cache configuration parameter: layers"
        return f"Missing required configuration option: {field_name}"
    return f"Invalid configuration option {'.'.join(loc)}: {first.get('msg')}"


def load_cache_config(data: CacheConfig | Mapping[str, Any]) -> CacheConfig:
    """
    Validate a cache configuration.

    Args:
        data: A CacheConfig, or a mapping with namespace/encoder/layers keys

    Returns:
        Validated CacheConfig

    Raises:
        InvalidConfigurationError: If required keys are missing or malformed
    """
    if isinstance(data, CacheConfig):
        return data
    try:
        return CacheConfig.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidConfigurationError(_format_validation_error(e)) from e


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CACHESTACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    namespace: str = ""
    encoder: str = "json"
    layers_json: str | None = None  # JSON list of {layer_name, layer_options}

    # Logging
    log_level: str = "INFO"

    # Defaults picked up by layers when their options omit them
    redis_url: str = "redis://localhost:6379/0"
    redis_ttl_seconds: int = 0  # 0 = no expiry
    memcached_servers: list[str] = ["127.0.0.1:11211"]
    database_url: str = "sqlite:///data/cache.db"

    def cache_config(self) -> CacheConfig:
        """
        Build the cache configuration described by the environment.

        Without CACHESTACK_LAYERS_JSON the stack is a single array layer.
        """
        if self.layers_json:
            try:
                layers = json.loads(self.layers_json)
            except json.JSONDecodeError as e:
                raise InvalidConfigurationError(f"Invalid layers JSON: {e}") from e
        else:
            layers = [{"layer_name": "array", "layer_options": {}}]

        return load_cache_config(
            {"namespace": self.namespace, "encoder": self.encoder, "layers": layers}
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for quick access
settings = get_settings()
