"""API extensions: a listing that is never paginated."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pagerkit.pagination import KeyedObject, Page, PageDecodeError, PageFetcher, Pager, SinglePage


@dataclass(frozen=True)
class Extension:
    alias: str
    name: str = ""
    description: str = ""
    updated: str = ""

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "Extension":
        return cls(
            alias=str(raw["alias"]),
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            updated=str(raw.get("updated") or ""),
        )


class ExtensionPage(SinglePage):
    items_field = "extensions"


def extract_extensions(page: Page) -> list[Extension]:
    if not isinstance(page.body, KeyedObject):
        raise PageDecodeError(page.url, f"extension listing needs a JSON object body, got {page.body.kind}")
    try:
        return [Extension.from_json(raw) for raw in page.items()]
    except (KeyError, TypeError, ValueError) as e:
        raise PageDecodeError(page.url, f"bad extension entry: {e}") from e


def list_extensions(client: PageFetcher, *, base_url: str) -> Pager:
    return Pager(client, base_url.rstrip("/") + "/extensions", ExtensionPage)
