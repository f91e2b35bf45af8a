"""Object-storage containers: marker pagination over JSON or plain-text bodies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from pagerkit.pagination import (
    BareArray,
    ByteStream,
    MarkerPage,
    Page,
    Pager,
    PageDecodeError,
    PageFetcher,
)
from pagerkit.pagination.page import NO_CONTENT


@dataclass(frozen=True)
class Container:
    name: str
    count: int = 0
    bytes: int = 0

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "Container":
        return cls(
            name=str(raw["name"]),
            count=int(raw.get("count") or 0),
            bytes=int(raw.get("bytes") or 0),
        )


class ContainerPage(MarkerPage):
    def is_empty(self) -> bool:
        if self.status_code == NO_CONTENT:
            return True
        return len(extract_names(self)) == 0

    def last_marker(self) -> str:
        names = extract_names(self)
        if not names:
            return ""
        return names[-1]


def extract_info(page: Page) -> list[Container]:
    body = page.body
    if isinstance(body, ByteStream) and not body.data:
        return []
    if not isinstance(body, BareArray):
        raise PageDecodeError(page.url, f"container details need a JSON array body, got {body.kind}")
    try:
        return [Container.from_json(raw) for raw in body.items]
    except (KeyError, TypeError, ValueError) as e:
        raise PageDecodeError(page.url, f"bad container entry: {e}") from e


def extract_names(page: Page) -> list[str]:
    content_type = page.headers.get("Content-Type", "")
    if content_type.startswith("application/json"):
        return [c.name for c in extract_info(page)]
    if content_type.startswith("text/plain") or content_type == "":
        body = page.body
        if not isinstance(body, ByteStream):
            raise PageDecodeError(page.url, f"plain-text listing needs a byte body, got {body.kind}")
        return [name for name in body.data.decode("utf-8").split("\n") if name]
    raise PageDecodeError(page.url, f"cannot extract names from response with content-type: [{content_type}]")


def list_containers(
    client: PageFetcher,
    *,
    base_url: str,
    prefix: str | None = None,
    limit: int | None = None,
    marker: str | None = None,
    full: bool = False,
) -> Pager:
    """List containers of an account.

    ``full`` asks for JSON details (name, count, bytes); otherwise the service
    answers with one name per line.
    """
    if limit is not None and limit <= 0:
        return Pager.failed(ValueError(f"limit must be positive, got {limit}"), create_page=ContainerPage)

    params: dict[str, str] = {}
    if full:
        params["format"] = "json"
    if prefix:
        params["prefix"] = prefix
    if limit is not None:
        params["limit"] = str(limit)
    if marker:
        params["marker"] = marker

    url = str(httpx.URL(base_url, params=params)) if params else base_url
    # Content-Type is echoed back onto the merged page by all_pages(), so
    # extract_names can still tell the two listing formats apart.
    content_type = "application/json" if full else "text/plain"
    headers = {"Accept": content_type, "Content-Type": content_type}
    return Pager(client, url, ContainerPage, headers=headers)
