"""Pass-through encoder for callers that already store strings."""

from typing import Any

from cachestack.encoders.base import Encoder


class NoneEncoder(Encoder):
    """Identity transform. None is written as the empty string."""

    @property
    def name(self) -> str:
        return "none"

    def encode(self, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise TypeError(f"NoneEncoder only accepts str values, got {type(value).__name__}")
        return value

    def decode(self, value: Any) -> Any:
        return value
