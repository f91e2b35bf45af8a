"""Merging the bodies of many pages into one body of the same shape."""

from __future__ import annotations

import logging
from typing import Any

from pagerkit.pagination.body import (
    RECOGNIZED_SHAPES,
    BareArray,
    BodyValue,
    ByteStream,
    KeyedObject,
    UnrecognizedBody,
    describe,
)
from pagerkit.pagination.errors import UnexpectedBodyShapeError

log = logging.getLogger(__name__)

LINE_SEPARATOR = b"\n"


class BodyAccumulator:
    """Collects page bodies of one shape and produces the merged body."""

    shape: type = object

    def __init__(self) -> None:
        self.pages = 0

    def add(self, body: BodyValue, *, url: str = "") -> None:
        if not isinstance(body, self.shape):
            raise UnexpectedBodyShapeError(
                expected=describe_shape(self.shape),
                actual=describe(body),
                url=url,
            )
        self.pages += 1
        self._add(body)

    def _add(self, body: Any) -> None:
        raise NotImplementedError

    def result(self) -> BodyValue:
        raise NotImplementedError


class KeyedObjectAccumulator(BodyAccumulator):
    """Concatenates every list-valued, non-``links`` field.

    The merged body has a single entry keyed by the last non-empty list field name
    seen. Listings are expected to use one stable field name across pages.
    """

    shape = KeyedObject

    def __init__(self, field_name: str | None = None) -> None:
        super().__init__()
        self.field_name = field_name
        self.items: list[Any] = []

    def _add(self, body: KeyedObject) -> None:
        for key, value in body.fields.items():
            if key.endswith("links") or not isinstance(value, list):
                continue
            if not value and self.field_name is not None:
                continue
            if self.field_name is not None and key != self.field_name:
                log.warning("list field changed from %r to %r while merging pages", self.field_name, key)
            self.field_name = key
            self.items.extend(value)

    def result(self) -> KeyedObject:
        if self.field_name is None:
            return KeyedObject({})
        return KeyedObject({self.field_name: self.items})


class ByteStreamAccumulator(BodyAccumulator):
    """Joins chunks with exactly one newline between them.

    A single trailing newline on each chunk is dropped first so that
    line-oriented listings neither lose nor duplicate a line break at the join.
    """

    shape = ByteStream

    def __init__(self) -> None:
        super().__init__()
        self.chunks: list[bytes] = []

    def _add(self, body: ByteStream) -> None:
        self.chunks.append(body.data.removesuffix(LINE_SEPARATOR))

    def result(self) -> ByteStream:
        return ByteStream(LINE_SEPARATOR.join(self.chunks))


class BareArrayAccumulator(BodyAccumulator):
    shape = BareArray

    def __init__(self) -> None:
        super().__init__()
        self.items: list[Any] = []

    def _add(self, body: BareArray) -> None:
        self.items.extend(body.items)

    def result(self) -> BareArray:
        return BareArray(self.items)


def describe_shape(shape: type) -> str:
    return getattr(shape, "kind", shape.__name__)


def _first_list_field(body: KeyedObject) -> str | None:
    """Name of the first non-empty list field, else of the first list field."""
    names = [k for k, v in body.fields.items() if not k.endswith("links") and isinstance(v, list)]
    for name in names:
        if body.fields[name]:
            return name
    return names[0] if names else None


def accumulator_for(body: BodyValue, *, url: str = "") -> BodyAccumulator:
    """Pick the merge strategy for a listing from the shape of its first page."""
    if isinstance(body, KeyedObject):
        return KeyedObjectAccumulator(_first_list_field(body))
    if isinstance(body, ByteStream):
        return ByteStreamAccumulator()
    if isinstance(body, BareArray):
        return BareArrayAccumulator()
    actual = body.type_name if isinstance(body, UnrecognizedBody) else type(body).__name__
    raise UnexpectedBodyShapeError(expected=RECOGNIZED_SHAPES, actual=actual, url=url)

