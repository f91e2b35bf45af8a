"""Compute servers: link pagination via ``servers_links``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from pagerkit.pagination import KeyedObject, LinkedPage, Page, PageDecodeError, PageFetcher, Pager

VALID_STATUSES = frozenset({"ACTIVE", "BUILD", "DELETED", "ERROR", "PAUSED", "SHUTOFF", "SUSPENDED"})


@dataclass(frozen=True)
class Server:
    id: str
    name: str
    status: str = ""
    links: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "Server":
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            status=str(raw.get("status") or ""),
            links=tuple(str(link["href"]) for link in raw.get("links") or [] if "href" in link),
        )


class ServerPage(LinkedPage):
    items_field = "servers"


def extract_servers(page: Page) -> list[Server]:
    if not isinstance(page.body, KeyedObject):
        raise PageDecodeError(page.url, f"server listing needs a JSON object body, got {page.body.kind}")
    try:
        return [Server.from_json(raw) for raw in page.items()]
    except (KeyError, TypeError, ValueError) as e:
        raise PageDecodeError(page.url, f"bad server entry: {e}") from e


def list_servers(
    client: PageFetcher,
    *,
    base_url: str,
    detail: bool = False,
    limit: int | None = None,
    marker: str | None = None,
    name: str | None = None,
    status: str | None = None,
) -> Pager:
    if limit is not None and limit <= 0:
        return Pager.failed(ValueError(f"limit must be positive, got {limit}"), create_page=ServerPage)
    if status is not None and status.upper() not in VALID_STATUSES:
        return Pager.failed(ValueError(f"unknown server status: {status}"), create_page=ServerPage)

    params: dict[str, str] = {}
    if limit is not None:
        params["limit"] = str(limit)
    if marker:
        params["marker"] = marker
    if name:
        params["name"] = name
    if status:
        params["status"] = status.upper()

    url = base_url.rstrip("/") + ("/servers/detail" if detail else "/servers")
    if params:
        url = str(httpx.URL(url, params=params))
    return Pager(client, url, ServerPage)
