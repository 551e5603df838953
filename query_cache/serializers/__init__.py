"""
Query Cache — Serializers

Interchangeable payload encodings selected by configuration:
- json: self-describing UTF-8 JSON (default)
- msgpack: compact binary MessagePack
"""

from ..config import SerializerKind
from ..errors import ConfigurationError
from .interface import Serializer
from .json_serializer import JSONSerializer
from .msgpack_serializer import MsgPackSerializer

_SERIALIZERS: dict[SerializerKind, type[Serializer]] = {
    SerializerKind.JSON: JSONSerializer,
    SerializerKind.MSGPACK: MsgPackSerializer,
}


def get_serializer(kind: SerializerKind | str) -> Serializer:
    """
    Build a serializer for the given kind.

    Raises:
        ConfigurationError: If the kind is not supported
    """
    try:
        return _SERIALIZERS[SerializerKind(kind)]()
    except (KeyError, ValueError) as e:
        raise ConfigurationError(
            f"Unknown serializer: {kind}",
            details={"serializer": str(kind), "supported": [k.value for k in SerializerKind]},
        ) from e


__all__ = [
    "Serializer",
    "JSONSerializer",
    "MsgPackSerializer",
    "get_serializer",
]
