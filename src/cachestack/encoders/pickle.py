"""Pickle encoder for arbitrary Python objects."""

import base64
import pickle
from typing import Any

from cachestack.encoders.base import Encoder


class PickleEncoder(Encoder):
    """
    Encodes values with pickle, wrapped in base64 text.

    Only use with layers whose contents you trust: unpickling
    executes code chosen by whoever wrote the value.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self.protocol = protocol

    @property
    def name(self) -> str:
        return "pickle"

    def encode(self, value: Any) -> str:
        return base64.b64encode(pickle.dumps(value, protocol=self.protocol)).decode("ascii")

    def decode(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        return pickle.loads(base64.b64decode(value))
