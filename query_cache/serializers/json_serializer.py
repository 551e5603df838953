"""
Query Cache — JSON Serializer

Self-describing UTF-8 JSON encoding. Human readable, portable across
languages, and the default payload format.
"""

import base64
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic_core import to_jsonable_python

from ..errors import SerializationError
from .interface import Serializer
from .tags import enum_path, resolve_enum, scalar_from_text, scalar_to_text

TAG_KEY = "__query_cache_type__"

_NATIVE = (str, int, float, bool)


class JSONSerializer(Serializer):
    """
    JSON payload serializer.

    Native JSON types are written directly. Decimals, datetimes, dates,
    times, timedeltas, UUIDs, bytes and Enum members in plain structures
    are written as ``{"__query_cache_type__": tag, "value": ...}`` objects
    and restored on decode. Pydantic models and dataclasses are converted
    with pydantic's jsonable encoder; pass a destination type on decode to
    restore them.
    """

    name = "json"

    def _tag(self, value: Any) -> Any:
        if value is None or type(value) in _NATIVE:
            return value
        if isinstance(value, Enum):
            return {TAG_KEY: "enum", "class": enum_path(value), "value": self._tag(value.value)}
        if isinstance(value, Mapping):
            return {key: self._tag(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._tag(item) for item in value]
        if isinstance(value, bytes):
            return {TAG_KEY: "bytes", "value": base64.b64encode(value).decode("ascii")}

        tagged = scalar_to_text(value)
        if tagged is not None:
            tag, text = tagged
            return {TAG_KEY: tag, "value": text}
        # models, dataclasses and str/int subclasses go through json's default hook
        return value

    @staticmethod
    def _untag(obj: dict[str, Any]) -> Any:
        tag = obj.get(TAG_KEY)
        if tag is None:
            return obj
        if tag == "enum":
            return resolve_enum(obj["class"])(obj["value"])
        if tag == "bytes":
            return base64.b64decode(obj["value"])
        return scalar_from_text(tag, obj["value"])

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(
                self._tag(value),
                default=to_jsonable_python,
                ensure_ascii=False,
                separators=(",", ":"),
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Value of type {type(value).__name__} is not JSON serializable: {e}",
                details={"serializer": self.name, "value_type": type(value).__name__, "error": str(e)},
            ) from e

    def _decode(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"), object_hook=self._untag)
