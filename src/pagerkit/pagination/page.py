from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from pagerkit.pagination.body import (
    BareArray,
    BodyValue,
    ByteStream,
    KeyedObject,
    classify_body,
    describe,
)
from pagerkit.pagination.errors import NextPageURLError, PageDecodeError, UnexpectedBodyShapeError

# Some endpoints answer an exhausted listing with 204 and whatever body.
NO_CONTENT = 204


@dataclass(frozen=True)
class PageResult:
    """Raw snapshot of one fetched page: decoded body, headers and status."""

    body: BodyValue
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    status_code: int = 200
    url: str = ""

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name, default)

    def header_list(self, name: str) -> list[str]:
        return self.headers.get_list(name)

    def with_body(self, body: Any, *, headers: Mapping[str, str] | httpx.Headers | None = None) -> "PageResult":
        """Copy of this result with the body (and optionally headers) replaced."""
        changes: dict[str, Any] = {"body": classify_body(body)}
        if headers is not None:
            changes["headers"] = httpx.Headers(headers)
        return dataclasses.replace(self, **changes)


def page_result_from_parsed(
    body: Any,
    *,
    status_code: int = 200,
    headers: Mapping[str, str] | httpx.Headers | None = None,
    url: str = "",
) -> PageResult:
    return PageResult(
        body=classify_body(body),
        headers=httpx.Headers(headers or {}),
        status_code=status_code,
        url=url,
    )


def page_result_from_response(resp: httpx.Response) -> PageResult:
    """Build a PageResult from an HTTP response.

    JSON responses are decoded; any other content type is kept as raw bytes.
    """
    try:
        url = str(resp.request.url)
    except RuntimeError:
        # Responses built by hand in tests carry no request.
        url = ""
    content_type = resp.headers.get("Content-Type", "")
    if content_type.startswith("application/json") and resp.content:
        try:
            raw: Any = resp.json()
        except ValueError as e:
            raise PageDecodeError(url, f"invalid JSON body: {e}") from e
    else:
        raw = resp.content
    return PageResult(
        body=classify_body(raw),
        headers=resp.headers,
        status_code=resp.status_code,
        url=url,
    )


def _is_links_key(key: str) -> bool:
    return key.endswith("links")


class Page:
    """A single page of a listing.

    Resource packages subclass one of LinkedPage, MarkerPage or SinglePage and
    add typed extraction helpers. ``items_field`` names the list field of a
    keyed-object body; when it is None the items of every list-valued field
    whose name does not end in ``links`` are taken together.
    """

    items_field: str | None = None

    def __init__(self, result: PageResult, *, items_field: str | None = None) -> None:
        self.result = result
        if items_field is not None:
            self.items_field = items_field

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.url!r}, body={describe(self.body)})"

    @property
    def body(self) -> BodyValue:
        return self.result.body

    @property
    def url(self) -> str:
        return self.result.url

    @property
    def headers(self) -> httpx.Headers:
        return self.result.headers

    @property
    def status_code(self) -> int:
        return self.result.status_code

    def _keyed_items(self, fields: dict[str, Any]) -> list[Any]:
        if self.items_field is not None:
            value = fields.get(self.items_field)
            if value is None:
                return []
            if not isinstance(value, list):
                raise UnexpectedBodyShapeError(
                    expected=f"list in field {self.items_field!r}",
                    actual=type(value).__name__,
                    url=self.url,
                )
            return list(value)
        # No named field: every non-links list counts, as when pages are merged.
        items: list[Any] = []
        for key, value in fields.items():
            if not _is_links_key(key) and isinstance(value, list):
                items.extend(value)
        return items

    def items(self) -> list[Any]:
        """List items carried by this page.

        Byte-stream bodies are treated as one item per non-empty line.
        """
        body = self.body
        if isinstance(body, BareArray):
            return list(body.items)
        if isinstance(body, ByteStream):
            text = body.data.decode("utf-8", errors="replace")
            return [line for line in text.split("\n") if line]
        if isinstance(body, KeyedObject):
            return self._keyed_items(body.fields)
        raise UnexpectedBodyShapeError(expected="list items", actual=describe(body), url=self.url)

    def is_empty(self) -> bool:
        if self.status_code == NO_CONTENT:
            return True
        body = self.body
        if isinstance(body, ByteStream):
            return len(body.data) == 0
        if isinstance(body, BareArray):
            return len(body.items) == 0
        return len(self.items()) == 0

    def next_page_url(self) -> str:
        """URL of the following page, or "" when this is the last one."""
        raise NotImplementedError


class SinglePage(Page):
    """A listing that is never paginated."""

    def next_page_url(self) -> str:
        return ""


class LinkedPage(Page):
    """A page whose body embeds the URL of the next page.

    By default every field ending in ``links`` is searched for an entry with
    ``rel == "next"``. Setting ``link_path`` (e.g. ``("links", "next")``)
    instead follows nested keys to a string URL.
    """

    link_path: tuple[str, ...] | None = None
    next_rel = "next"

    def _resolve(self, href: str) -> str:
        if not self.url:
            return href
        return str(httpx.URL(self.url).join(href))

    def _follow_link_path(self, fields: dict[str, Any]) -> str:
        value: Any = fields
        path = list(self.link_path or ())
        while path:
            key = path.pop(0)
            if not isinstance(value, dict):
                raise NextPageURLError(self.url, f"expected an object before {key!r}, got {type(value).__name__}")
            if key not in value:
                return ""
            value = value[key]
        if value is None or value == "":
            return ""
        if not isinstance(value, str):
            raise NextPageURLError(self.url, f"expected a string URL, got {type(value).__name__}")
        return self._resolve(value)

    def _next_from_links(self, key: str, links: Any) -> str:
        if links is None:
            return ""
        # {"next": "..."} form.
        if isinstance(links, dict):
            href = links.get(self.next_rel)
            if href is None:
                return ""
            if not isinstance(href, str):
                raise NextPageURLError(self.url, f"{key}.{self.next_rel} is {type(href).__name__}, not a string")
            return self._resolve(href) if href else ""
        if not isinstance(links, list):
            raise NextPageURLError(self.url, f"{key} is {type(links).__name__}, not an array")
        for link in links:
            if not isinstance(link, dict):
                raise NextPageURLError(self.url, f"{key} entry is {type(link).__name__}, not an object")
            if link.get("rel") != self.next_rel:
                continue
            href = link.get("href")
            if not isinstance(href, str):
                raise NextPageURLError(self.url, f"{key} next entry has no string href")
            return self._resolve(href) if href else ""
        return ""

    def next_page_url(self) -> str:
        body = self.body
        if not isinstance(body, KeyedObject):
            raise NextPageURLError(self.url, f"link pagination needs a keyed object body, got {describe(body)}")
        if self.link_path is not None:
            return self._follow_link_path(body.fields)
        for key, value in body.fields.items():
            if not _is_links_key(key):
                continue
            url = self._next_from_links(key, value)
            if url:
                return url
        return ""


class MarkerPage(Page):
    """A page whose successor is addressed by a marker taken from its last item.

    Subclasses override ``last_marker`` or set ``marker_field`` to read the
    marker from that field of the last item.
    """

    marker_param = "marker"
    marker_field: str | None = None

    def __init__(
        self,
        result: PageResult,
        *,
        items_field: str | None = None,
        marker_field: str | None = None,
    ) -> None:
        super().__init__(result, items_field=items_field)
        if marker_field is not None:
            self.marker_field = marker_field

    def last_marker(self) -> str:
        if self.marker_field is None:
            raise NotImplementedError(f"{type(self).__name__} must define last_marker() or marker_field")
        items = self.items()
        if not items:
            return ""
        last = items[-1]
        if not isinstance(last, dict):
            raise NextPageURLError(self.url, f"last item is {type(last).__name__}, not an object")
        marker = last.get(self.marker_field)
        return "" if marker is None else str(marker)

    def next_page_url(self) -> str:
        marker = self.last_marker()
        if not marker:
            return ""
        if not self.url:
            raise NextPageURLError(self.url, "page has no URL to attach a marker to")
        return str(httpx.URL(self.url).copy_set_param(self.marker_param, marker))
