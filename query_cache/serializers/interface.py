"""
Query Cache — Serializer Interface

Defines the abstract interface that all payload serializers must implement.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ..errors import SerializationError


class Serializer(ABC):
    """
    Abstract base class for payload serializers.

    A serializer turns a query result into an opaque byte payload and back.
    Implementations must satisfy the round-trip law: decoding an encoded
    value into the value's own type yields a structurally equal value.
    """

    name: str = "abstract"

    @abstractmethod
    def serialize(self, value: Any) -> bytes:
        """
        Encode a value to bytes.

        Args:
            value: Result structure to encode

        Returns:
            Encoded payload

        Raises:
            SerializationError: If the value cannot be encoded
        """
        pass

    @abstractmethod
    def _decode(self, data: bytes) -> Any:
        """Decode raw bytes into plain Python structures."""
        pass

    def deserialize(self, data: bytes, destination: Any = None) -> Any:
        """
        Decode a payload, optionally validating it into a destination type.

        Args:
            data: Encoded payload
            destination: Type the decoded data must conform to
                (e.g. ``list[User]`` or ``dict[str, Any] | None``).
                None returns the decoded structure as-is.

        Returns:
            Decoded value

        Raises:
            SerializationError: If the payload is malformed or does not
                match the destination type
        """
        try:
            decoded = self._decode(data)
        except SerializationError:
            raise
        except Exception as e:
            raise SerializationError(
                f"{self.name} payload could not be decoded: {e}",
                details={"serializer": self.name, "size": len(data), "error": str(e)},
            ) from e

        if destination is None:
            return decoded

        try:
            return TypeAdapter(destination).validate_python(decoded)
        except ValidationError as e:
            raise SerializationError(
                f"{self.name} payload does not match destination {destination!r}",
                details={"serializer": self.name, "destination": repr(destination), "errors": e.errors()},
            ) from e
