from __future__ import annotations

import functools
import json
import logging
import sys
from typing import Any, TextIO

from pagerkit.client import ServiceClient
from pagerkit.config import Settings
from pagerkit.pagination import LinkedPage, MarkerPage, Page, PageFactory, Pager, SinglePage

log = logging.getLogger("pagerkit")


def page_factory(style: str, *, items_field: str | None = None, marker_field: str | None = None) -> PageFactory:
    if style == "linked":
        return functools.partial(LinkedPage, items_field=items_field)
    if style == "marker":
        if not marker_field:
            raise ValueError("marker style needs --marker-field")
        return functools.partial(MarkerPage, items_field=items_field, marker_field=marker_field)
    if style == "single":
        return functools.partial(SinglePage, items_field=items_field)
    raise ValueError(f"Unknown pagination style: {style}")


def _write_items(page: Page, out: TextIO) -> int:
    items = page.items()
    for item in items:
        if isinstance(item, str):
            out.write(item + "\n")
        else:
            out.write(json.dumps(item, sort_keys=True) + "\n")
    return len(items)


async def walk_listing(
    pager: Pager,
    *,
    mode: str,
    max_pages: int | None = None,
    out: TextIO = sys.stdout,
) -> int:
    """Print the items of a listing; returns how many were printed."""
    if mode == "all":
        page = await pager.all_pages()
        return _write_items(page, out)

    if mode != "each":
        raise ValueError(f"Unknown mode: {mode}")
    if max_pages is not None and max_pages < 1:
        raise ValueError(f"max_pages must be at least 1, got {max_pages}")

    total = 0
    seen = 0

    def visit(page: Page) -> bool:
        nonlocal total, seen
        seen += 1
        n = _write_items(page, out)
        total += n
        log.info("page=%d items=%d url=%s", seen, n, page.url)
        return max_pages is None or seen < max_pages

    await pager.each_page(visit)
    return total


async def run_app(
    *,
    url: str,
    style: str,
    mode: str = "each",
    items_field: str | None = None,
    marker_field: str | None = None,
    max_pages: int | None = None,
    headers: dict[str, Any] | None = None,
) -> int:
    settings = Settings.load()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # httpx is very chatty at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    create_page = page_factory(style, items_field=items_field, marker_field=marker_field)
    async with ServiceClient.from_settings(settings) as client:
        log.info("base_url=%s style=%s mode=%s", client.base_url, style, mode)
        pager = Pager(client, client.absolute_url(url), create_page, headers=headers)
        total = await walk_listing(pager, mode=mode, max_pages=max_pages)

    log.info("done items=%d", total)
    return total
