"""Abstract base class for value encoders."""

from abc import ABC, abstractmethod
from typing import Any


class Encoder(ABC):
    """
    Stateless transform between application values and wire values.

    Every layer stores and returns only wire values (strings); the
    cache service is the only component that sees decoded values.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this encoder.

        Returns:
            Encoder name (e.g., 'json', 'pickle')
        """
        ...

    @abstractmethod
    def encode(self, value: Any) -> str:
        """
        Encode an application value.

        Args:
            value: Any value representable by this encoder

        Returns:
            Wire value
        """
        ...

    @abstractmethod
    def decode(self, value: Any) -> Any:
        """
        Decode a wire value.

        Values that are not strings are assumed to be decoded already
        and are returned unchanged.

        Args:
            value: Wire value, or an already-decoded value

        Returns:
            Application value
        """
        ...
