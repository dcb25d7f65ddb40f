"""Encoders turning application values into wire values and back."""

from cachestack.encoders.base import Encoder
from cachestack.encoders.json import JsonEncoder
from cachestack.encoders.none import NoneEncoder
from cachestack.encoders.pickle import PickleEncoder

__all__ = [
    "Encoder",
    "JsonEncoder",
    "NoneEncoder",
    "PickleEncoder",
]
