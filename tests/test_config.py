"""Tests for configuration models and settings."""

import json

import pytest

from cachestack.config import CacheConfig, LayerConfig, Settings, load_cache_config
from cachestack.exceptions import InvalidConfigurationError


class TestCacheConfig:
    """Tests for CacheConfig validation."""

    def test_defaults(self) -> None:
        """Test namespace and encoder defaults."""
        config = load_cache_config({"layers": [{"layer_name": "array", "layer_options": {}}]})

        assert config.namespace == ""
        assert config.encoder == "json"
        assert config.layers == [LayerConfig(layer_name="array", layer_options={})]

    def test_model_passes_through(self) -> None:
        """Test an already validated config is returned as is."""
        config = CacheConfig(layers=[LayerConfig(layer_name="array", layer_options={})])
        assert load_cache_config(config) is config

    def test_missing_layers_message(self) -> None:
        """Test the missing layers error names the parameter."""
        with pytest.raises(
            InvalidConfigurationError,
            match="Missing required cache configuration parameter: layers",
        ):
            load_cache_config({})

    def test_missing_layer_field_message(self) -> None:
        """Test a missing layer field is named in the error."""
        with pytest.raises(
            InvalidConfigurationError,
            match="Missing required configuration option: layer_options",
        ):
            load_cache_config({"layers": [{"layer_name": "array"}]})

    def test_wrong_type_message(self) -> None:
        """Test a malformed value is reported as invalid."""
        with pytest.raises(InvalidConfigurationError, match="Invalid configuration option"):
            load_cache_config({"layers": "array"})


class TestSettings:
    """Tests for environment-driven Settings."""

    def test_defaults(self) -> None:
        """Test default settings values."""
        settings = Settings(_env_file=None)

        assert settings.namespace == ""
        assert settings.encoder == "json"
        assert settings.log_level == "INFO"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.memcached_servers == ["127.0.0.1:11211"]

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test values are read from CACHESTACK_ variables."""
        monkeypatch.setenv("CACHESTACK_NAMESPACE", "mx")
        monkeypatch.setenv("CACHESTACK_ENCODER", "pickle")

        settings = Settings(_env_file=None)

        assert settings.namespace == "mx"
        assert settings.encoder == "pickle"

    def test_default_stack(self) -> None:
        """Test a single array layer is used without CACHESTACK_LAYERS_JSON."""
        config = Settings(_env_file=None).cache_config()

        assert [layer.layer_name for layer in config.layers] == ["array"]

    def test_layers_json(self) -> None:
        """Test the layer stack is parsed from JSON."""
        layers = [
            {"layer_name": "memory", "layer_options": {"ttl": 30, "cache_not_found_keys": True}},
            {"adapter_name": "redis", "adapter_options": {"url": "redis://cache:6379/0"}},
        ]
        settings = Settings(_env_file=None, namespace="mx", layers_json=json.dumps(layers))

        config = settings.cache_config()

        assert config.namespace == "mx"
        assert [layer.layer_name for layer in config.layers] == ["memory", "redis"]
        assert config.layers[1].layer_options == {"url": "redis://cache:6379/0"}

    def test_layers_json_invalid(self) -> None:
        """Test malformed JSON raises a configuration error."""
        settings = Settings(_env_file=None, layers_json="[{")

        with pytest.raises(InvalidConfigurationError, match="Invalid layers JSON"):
            settings.cache_config()
