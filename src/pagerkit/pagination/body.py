"""Decoded page bodies.

A page body is decoded exactly once, when the PageResult is built, into one of
a closed set of shapes. Everything above this module switches on the shape with
``isinstance`` instead of poking at arbitrary decoded values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class KeyedObject:
    """A JSON object body: field name -> value."""

    fields: dict[str, Any] = field(default_factory=dict)

    kind = "keyed object"

    @property
    def raw(self) -> dict[str, Any]:
        return self.fields


@dataclass(frozen=True)
class ByteStream:
    """A non-JSON body kept as raw bytes (e.g. text/plain listings)."""

    data: bytes = b""

    kind = "byte stream"

    @property
    def raw(self) -> bytes:
        return self.data


@dataclass(frozen=True)
class BareArray:
    """A JSON array body."""

    items: list[Any] = field(default_factory=list)

    kind = "bare array"

    @property
    def raw(self) -> list[Any]:
        return self.items


@dataclass(frozen=True)
class UnrecognizedBody:
    """Any decoded value that is none of the recognised shapes (scalars, null)."""

    value: Any = None

    kind = "unrecognized"

    @property
    def raw(self) -> Any:
        return self.value

    @property
    def type_name(self) -> str:
        return type(self.value).__name__


BodyValue = Union[KeyedObject, ByteStream, BareArray, UnrecognizedBody]

RECOGNIZED_SHAPES = "keyed object/byte stream/bare array"


def classify_body(raw: Any) -> BodyValue:
    """Wrap a decoded value in its BodyValue tag.

    Already-tagged values are returned unchanged, so callers can pass either.
    """
    if isinstance(raw, (KeyedObject, ByteStream, BareArray, UnrecognizedBody)):
        return raw
    if isinstance(raw, dict):
        return KeyedObject(raw)
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return ByteStream(bytes(raw))
    if isinstance(raw, list):
        return BareArray(raw)
    return UnrecognizedBody(raw)


def describe(body: BodyValue) -> str:
    if isinstance(body, UnrecognizedBody):
        return body.type_name
    return body.kind
