"""
Query Cache — MessagePack Serializer

Compact binary encoding. Smaller payloads and faster round trips than JSON,
at the cost of not being human readable.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

import msgpack
from pydantic_core import to_jsonable_python

from ..errors import SerializationError
from .interface import Serializer
from .tags import SCALAR_TAGS, enum_path, resolve_enum, scalar_from_text, scalar_to_text

EXT_ENUM = 1
# Scalar extension codes start after EXT_ENUM, in SCALAR_TAGS order
_EXT_CODES = {tag: code for code, (_, tag, _, _) in enumerate(SCALAR_TAGS, start=EXT_ENUM + 1)}
_EXT_TAGS = {code: tag for tag, code in _EXT_CODES.items()}


class MsgPackSerializer(Serializer):
    """
    MessagePack payload serializer.

    Bytes values are kept as binary. Decimals, datetimes, dates, times,
    timedeltas, UUIDs and Enum members are written as extension types and
    restored on decode.
    """

    name = "msgpack"

    def _default(self, obj: Any) -> Any:
        # strict_types routes subclasses of native types here too
        if isinstance(obj, Enum):
            return msgpack.ExtType(EXT_ENUM, self._pack([enum_path(obj), obj.value]))
        if isinstance(obj, Mapping):
            return dict(obj)
        if isinstance(obj, (list, tuple)):
            return list(obj)
        for native in (str, bytes, int, float):
            if isinstance(obj, native):
                return native(obj)

        tagged = scalar_to_text(obj)
        if tagged is not None:
            tag, text = tagged
            return msgpack.ExtType(_EXT_CODES[tag], text.encode("utf-8"))
        return to_jsonable_python(obj)

    def _ext_hook(self, code: int, data: bytes) -> Any:
        if code == EXT_ENUM:
            path, value = self._unpack(data)
            return resolve_enum(path)(value)
        tag = _EXT_TAGS.get(code)
        if tag is None:
            raise SerializationError(f"Unknown MessagePack extension type: {code}", details={"code": code})
        return scalar_from_text(tag, data.decode("utf-8"))

    def _pack(self, value: Any) -> bytes:
        return msgpack.packb(value, default=self._default, use_bin_type=True, strict_types=True)

    def _unpack(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False, ext_hook=self._ext_hook)

    def serialize(self, value: Any) -> bytes:
        try:
            return self._pack(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise SerializationError(
                f"Value of type {type(value).__name__} is not MessagePack serializable: {e}",
                details={"serializer": self.name, "value_type": type(value).__name__, "error": str(e)},
            ) from e

    def _decode(self, data: bytes) -> Any:
        return self._unpack(data)
