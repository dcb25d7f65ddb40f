"""JSON encoder, the default wire format."""

import json
from typing import Any

from cachestack.encoders.base import Encoder


class JsonEncoder(Encoder):
    """Encodes values as compact JSON text."""

    @property
    def name(self) -> str:
        return "json"

    def encode(self, value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    def decode(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        return json.loads(value)
