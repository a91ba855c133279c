"""Temporal DataConverter for cpnet frozen-dataclass values.

Workflow inputs and activity outputs carry Decimal amounts, dates, enums
and nested dataclasses (Money inside RedemptionResult, for instance).
Encoding tags each dataclass with its qualified name; decoding rebuilds
it, resolving classes only from cpnet modules listed in _ALLOWED_MODULES.
"""

from __future__ import annotations

import dataclasses
import importlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from temporalio.converter import (
    CompositePayloadConverter,
    DataConverter,
    DefaultPayloadConverter,
    JSONPlainPayloadConverter,
    JSONTypeConverter,
)

_TYPE_TAG = "__type__"
_ENUM_TAG = "__enum__"

_ALLOWED_MODULES: frozenset[str] = frozenset({
    "cpnet.core.money",
    "cpnet.core.types",
    "cpnet.workflow.types",
})


def _encode(obj: Any) -> Any:
    """Recursively convert a value into JSON-compatible data."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, Decimal):
        return {"__decimal__": str(obj)}
    if isinstance(obj, datetime):
        return {"__datetime__": obj.isoformat()}
    if isinstance(obj, date):
        return {"__date__": obj.isoformat()}
    if isinstance(obj, Enum):
        return {_ENUM_TAG: f"{type(obj).__module__}.{type(obj).__qualname__}", "value": obj.value}
    if isinstance(obj, (tuple, list)):
        return [_encode(x) for x in obj]
    if isinstance(obj, frozenset):
        return {"__frozenset__": sorted(_encode(x) for x in obj)}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        encoded: dict[str, Any] = {_TYPE_TAG: f"{type(obj).__module__}.{type(obj).__qualname__}"}
        for field in dataclasses.fields(obj):
            encoded[field.name] = _encode(getattr(obj, field.name))
        return encoded
    raise TypeError(f"Cannot encode {type(obj).__name__} for Temporal")


class CpnetJSONEncoder(json.JSONEncoder):
    def default(self, o: Any) -> Any:
        return _encode(o)


_CLASS_CACHE: dict[str, type] = {}


def _resolve_class(fqn: str) -> type | None:
    """Look up a tagged class; anything outside _ALLOWED_MODULES is refused."""
    if fqn in _CLASS_CACHE:
        return _CLASS_CACHE[fqn]
    module_name, _, class_name = fqn.rpartition(".")
    if module_name not in _ALLOWED_MODULES:
        return None
    cls = getattr(importlib.import_module(module_name), class_name, None)
    if isinstance(cls, type):
        _CLASS_CACHE[fqn] = cls
        return cls
    return None


def _decode(value: Any) -> Any:
    """Inverse of _encode. Lists come back as tuples."""
    if isinstance(value, list):
        return tuple(_decode(x) for x in value)
    if not isinstance(value, dict):
        return value
    if "__decimal__" in value:
        return Decimal(value["__decimal__"])
    if "__datetime__" in value:
        return datetime.fromisoformat(value["__datetime__"])
    if "__date__" in value:
        return date.fromisoformat(value["__date__"])
    if "__frozenset__" in value:
        return frozenset(_decode(x) for x in value["__frozenset__"])
    if _ENUM_TAG in value:
        enum_cls = _resolve_class(value[_ENUM_TAG])
        if enum_cls is None:
            raise TypeError(f"Refusing to decode enum {value[_ENUM_TAG]}")
        return enum_cls(value["value"])
    if _TYPE_TAG in value:
        cls = _resolve_class(value[_TYPE_TAG])
        if cls is None or not dataclasses.is_dataclass(cls):
            raise TypeError(f"Refusing to decode {value[_TYPE_TAG]}")
        kwargs = {
            f.name: _decode(value[f.name]) for f in dataclasses.fields(cls) if f.name in value
        }
        return cls(**kwargs)
    return {k: _decode(v) for k, v in value.items()}


class CpnetJSONTypeConverter(JSONTypeConverter):
    """Rebuild tagged values regardless of the declared type hint."""

    def to_typed_value(self, hint: type, value: Any) -> Any:
        if isinstance(value, dict) and (
            _TYPE_TAG in value or _ENUM_TAG in value or "__decimal__" in value
            or "__date__" in value or "__datetime__" in value
        ):
            return _decode(value)
        return JSONTypeConverter.Unhandled


class CpnetPayloadConverter(CompositePayloadConverter):
    def __init__(self) -> None:
        json_converter = JSONPlainPayloadConverter(
            encoder=CpnetJSONEncoder,
            custom_type_converters=[CpnetJSONTypeConverter()],
        )
        super().__init__(
            *(
                c
                for c in DefaultPayloadConverter.default_encoding_payload_converters
                if not isinstance(c, JSONPlainPayloadConverter)
            ),
            json_converter,
        )


CPNET_DATA_CONVERTER = DataConverter(payload_converter_class=CpnetPayloadConverter)
