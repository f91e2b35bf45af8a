"""Tests for Pager.each_page / pages / all_pages against an in-memory backend."""

from __future__ import annotations

import sys
from pathlib import Path

_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import asyncio
import functools
import logging
from typing import Any

import httpx
import pytest

from pagerkit.pagination import (
    BareArray,
    ByteStream,
    KeyedObject,
    LinkedPage,
    MarkerPage,
    NextPageURLError,
    Page,
    PageDecodeError,
    Pager,
    PageResult,
    SinglePage,
    UnexpectedBodyShapeError,
    page_result_from_parsed,
)

BASE = "https://api.test/items"


class FakeFetcher:
    """Serves canned bodies by URL and records every fetch."""

    def __init__(self, bodies: dict[str, Any], *, headers: dict[str, str] | None = None) -> None:
        self.bodies = bodies
        self.headers = headers or {}
        self.calls: list[str] = []
        self.sent_headers: list[dict[str, str]] = []

    async def fetch(self, url: str, *, headers=None) -> PageResult:
        self.calls.append(url)
        self.sent_headers.append(dict(headers or {}))
        if url not in self.bodies:
            raise httpx.HTTPStatusError(
                f"404 for {url}",
                request=httpx.Request("GET", url),
                response=httpx.Response(404),
            )
        return page_result_from_parsed(self.bodies[url], url=url, headers=self.headers)


def _linked_chain(*pages: list[Any], field: str = "items") -> dict[str, Any]:
    """Build link-paginated bodies BASE, BASE?page=2, ... from item lists."""
    bodies: dict[str, Any] = {}
    for i, items in enumerate(pages):
        url = BASE if i == 0 else f"{BASE}?page={i + 1}"
        body: dict[str, Any] = {field: items}
        if i + 1 < len(pages):
            body[f"{field}_links"] = [{"rel": "next", "href": f"{BASE}?page={i + 2}"}]
        bodies[url] = body
    return bodies


def _array_chain(*pages: list[Any]) -> dict[str, Any]:
    """Marker-paginated bare arrays keyed by ``id``."""
    bodies: dict[str, Any] = {}
    url = BASE
    for items in pages:
        bodies[url] = items
        if items:
            url = str(httpx.URL(url).copy_set_param("marker", items[-1]["id"]))
    return bodies


IdPage = functools.partial(MarkerPage, marker_field="id")


def _collect(pager: Pager) -> list[Page]:
    seen: list[Page] = []

    def visit(page: Page) -> bool:
        seen.append(page)
        return True

    asyncio.run(pager.each_page(visit))
    return seen


class TestEachPage:
    def test_visits_every_page_in_order(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1, 2], [3], [4, 5]))
        pages = _collect(Pager(fetcher, BASE, LinkedPage))
        assert [p.items() for p in pages] == [[1, 2], [3], [4, 5]]
        assert fetcher.calls == [BASE, f"{BASE}?page=2", f"{BASE}?page=3"]

    def test_empty_page_terminates_without_visit(self) -> None:
        fetcher = FakeFetcher(_array_chain([{"id": 1}, {"id": 2}], [{"id": 3}], []))
        pages = _collect(Pager(fetcher, BASE, IdPage))
        assert [len(p.items()) for p in pages] == [2, 1]
        assert len(fetcher.calls) == 3

    def test_empty_first_page_visits_nothing(self) -> None:
        fetcher = FakeFetcher({BASE: {"items": []}})
        assert _collect(Pager(fetcher, BASE, LinkedPage)) == []
        assert fetcher.calls == [BASE]

    def test_early_stop_fetches_nothing_further(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2], [3], [4]))
        visited: list[int] = []

        def visit(page: Page) -> bool:
            visited.append(page.items()[0])
            return len(visited) < 2

        asyncio.run(Pager(fetcher, BASE, LinkedPage).each_page(visit))
        assert visited == [1, 2]
        assert len(fetcher.calls) == 2

    def test_async_visitor(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))
        visited: list[Any] = []

        async def visit(page: Page) -> bool:
            await asyncio.sleep(0)
            visited.extend(page.items())
            return True

        asyncio.run(Pager(fetcher, BASE, LinkedPage).each_page(visit))
        assert visited == [1, 2]

    def test_empty_list_field_does_not_hide_items(self) -> None:
        fetcher = FakeFetcher({BASE: {"tags": [], "items": [1, 2]}})
        pages = _collect(Pager(fetcher, BASE, LinkedPage))
        assert [p.items() for p in pages] == [[1, 2]]

    def test_visitor_returning_none_stops_and_logs(self, caplog: pytest.LogCaptureFixture) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))
        visited: list[Page] = []

        with caplog.at_level(logging.DEBUG, logger="pagerkit.pagination.pager"):
            asyncio.run(Pager(fetcher, BASE, LinkedPage).each_page(visited.append))

        assert len(visited) == 1
        assert fetcher.calls == [BASE]
        assert "visitor returned None" in caplog.text

    def test_visitor_error_propagates(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))

        def visit(page: Page) -> bool:
            raise KeyError("boom")

        with pytest.raises(KeyError):
            asyncio.run(Pager(fetcher, BASE, LinkedPage).each_page(visit))
        assert fetcher.calls == [BASE]

    def test_transport_error_propagates(self) -> None:
        bodies = {BASE: {"items": [1], "items_links": [{"rel": "next", "href": f"{BASE}?page=404"}]}}
        fetcher = FakeFetcher(bodies)
        with pytest.raises(httpx.HTTPStatusError):
            _collect(Pager(fetcher, BASE, LinkedPage))
        assert fetcher.calls == [BASE, f"{BASE}?page=404"]

    def test_construction_error_keeps_url(self) -> None:
        def create_page(result: PageResult) -> Page:
            if "page=2" in result.url:
                raise ValueError("missing field")
            return LinkedPage(result)

        fetcher = FakeFetcher(_linked_chain([1], [2]))
        with pytest.raises(PageDecodeError) as exc_info:
            _collect(Pager(fetcher, BASE, create_page))
        assert exc_info.value.url == f"{BASE}?page=2"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_malformed_links_abort_after_visit(self) -> None:
        fetcher = FakeFetcher({BASE: {"items": [1], "items_links": "garbage"}})
        seen: list[Page] = []
        with pytest.raises(NextPageURLError):
            asyncio.run(Pager(fetcher, BASE, LinkedPage).each_page(lambda p: seen.append(p) or True))
        assert len(seen) == 1

    def test_extra_headers_sent_on_every_fetch(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))
        _collect(Pager(fetcher, BASE, LinkedPage, headers={"X-Trace": "t1"}))
        assert fetcher.sent_headers == [{"X-Trace": "t1"}, {"X-Trace": "t1"}]

    def test_re_iteration_on_fresh_pagers_is_identical(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1, 2], [3]))
        first = [(p.url, p.items()) for p in _collect(Pager(fetcher, BASE, LinkedPage))]
        second = [(p.url, p.items()) for p in _collect(Pager(fetcher, BASE, LinkedPage))]
        assert first == second

    def test_cancellation_stops_the_walk(self) -> None:
        class SlowFetcher(FakeFetcher):
            async def fetch(self, url: str, *, headers=None) -> PageResult:
                if self.calls:
                    self.calls.append(url)
                    await asyncio.sleep(10)
                return await super().fetch(url, headers=headers)

        fetcher = SlowFetcher(_linked_chain([1], [2], [3]))
        visited: list[Page] = []

        async def main() -> None:
            await asyncio.wait_for(
                Pager(fetcher, BASE, LinkedPage).each_page(lambda p: visited.append(p) or True),
                timeout=0.05,
            )

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(main())
        assert len(visited) == 1
        assert fetcher.calls == [BASE, f"{BASE}?page=2"]


class TestPagesIterator:
    def test_break_stops_fetching(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2], [3]))

        async def main() -> list[Any]:
            got: list[Any] = []
            async for page in Pager(fetcher, BASE, LinkedPage).pages():
                got.extend(page.items())
                break
            return got

        assert asyncio.run(main()) == [1]
        assert fetcher.calls == [BASE]

    def test_first_page_is_not_fetched_twice(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))
        pager = Pager(fetcher, BASE, LinkedPage)

        async def main() -> list[Any]:
            first = await pager.first_page()
            assert first.items() == [1]
            return [p.items() for p in [page async for page in pager.pages()]]

        assert asyncio.run(main()) == [[1], [2]]
        assert fetcher.calls == [BASE, f"{BASE}?page=2"]


class TestStickyError:
    def test_each_page_and_all_pages_raise_without_io(self) -> None:
        err = ValueError("bad listing options")
        pager = Pager.failed(err)

        with pytest.raises(ValueError) as exc_info:
            asyncio.run(pager.each_page(lambda p: True))
        assert exc_info.value is err

        with pytest.raises(ValueError) as exc_info:
            asyncio.run(pager.all_pages())
        assert exc_info.value is err

    def test_derived_pagers_keep_the_error(self) -> None:
        err = RuntimeError("templating failed")
        pager = Pager.failed(err).with_page_creator(LinkedPage).with_headers({"X-A": "1"})
        assert pager.err is err
        with pytest.raises(RuntimeError):
            asyncio.run(pager.all_pages())

    def test_no_fetch_is_attempted(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1]))
        pager = Pager(fetcher, BASE, LinkedPage)
        pager._state.err = OSError("earlier failure")
        with pytest.raises(OSError):
            asyncio.run(pager.each_page(lambda p: True))
        with pytest.raises(OSError):
            asyncio.run(pager.all_pages())
        assert fetcher.calls == []


class TestAllPages:
    def test_keyed_object_pages_are_concatenated(self) -> None:
        a, b, c = {"id": "a"}, {"id": "b"}, {"id": "c"}
        bodies = _linked_chain([a, b], [c], [])
        fetcher = FakeFetcher(bodies)

        page = asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())

        assert isinstance(page, LinkedPage)
        assert page.body == KeyedObject({"items": [a, b, c]})
        assert fetcher.calls == [BASE, f"{BASE}?page=2", f"{BASE}?page=3"]

    def test_links_fields_are_dropped(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2], field="servers"))
        page = asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())
        assert page.body.raw == {"servers": [1, 2]}
        assert page.next_page_url() == ""

    def test_byte_stream_pages_join_with_one_newline(self) -> None:
        class NamePage(MarkerPage):
            def last_marker(self) -> str:
                items = self.items()
                return items[-1] if items else ""

        bodies = {
            BASE: b"name1\n",
            f"{BASE}?marker=name1": b"name2\n",
            f"{BASE}?marker=name2": b"",
        }
        fetcher = FakeFetcher(bodies)
        page = asyncio.run(Pager(fetcher, BASE, NamePage).all_pages())
        assert page.body == ByteStream(b"name1\nname2")
        assert len(fetcher.calls) == 3

    def test_bare_array_pages_are_flattened(self) -> None:
        fetcher = FakeFetcher(_array_chain([{"id": 1}, {"id": 2}], [{"id": 3}], []))
        page = asyncio.run(Pager(fetcher, BASE, IdPage).all_pages())
        assert page.body == BareArray([{"id": 1}, {"id": 2}, {"id": 3}])
        assert isinstance(page, MarkerPage)
        assert page.marker_field == "id"

    def test_first_page_fetched_once(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]))
        asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())
        assert fetcher.calls.count(BASE) == 1

    def test_headers_replaced_by_pager_headers(self) -> None:
        fetcher = FakeFetcher(_linked_chain([1], [2]), headers={"X-Page-Header": "p"})
        pager = Pager(fetcher, BASE, LinkedPage, headers={"Content-Type": "application/json"})
        page = asyncio.run(pager.all_pages())
        assert page.headers.get("X-Page-Header") is None
        assert page.headers["Content-Type"] == "application/json"

    def test_result_built_with_same_factory(self) -> None:
        built: list[PageResult] = []

        def create_page(result: PageResult) -> Page:
            built.append(result)
            return LinkedPage(result)

        fetcher = FakeFetcher(_linked_chain([1], [2]))
        page = asyncio.run(Pager(fetcher, BASE, create_page).all_pages())
        assert len(built) == 3
        assert built[-1] is page.result

    def test_single_page_shortcut(self) -> None:
        body = {"items": [1], "items_links": [{"rel": "next", "href": f"{BASE}?page=2"}]}
        fetcher = FakeFetcher({BASE: body, f"{BASE}?page=2": {"items": [2]}})
        pager = Pager(fetcher, BASE, SinglePage)

        first = asyncio.run(pager.all_pages())
        again = asyncio.run(pager.all_pages())

        assert first.body.raw == body
        assert again is first
        assert fetcher.calls == [BASE]

    def test_unsupported_shape_rejected_before_more_fetches(self) -> None:
        fetcher = FakeFetcher({BASE: "a bare string", f"{BASE}?page=2": [1]})
        with pytest.raises(UnexpectedBodyShapeError) as exc_info:
            asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())
        assert exc_info.value.actual == "str"
        assert fetcher.calls == [BASE]

    def test_shape_change_between_pages_rejected(self) -> None:
        bodies = {
            BASE: {"items": [1], "items_links": [{"rel": "next", "href": f"{BASE}?page=2"}]},
            f"{BASE}?page=2": [2],
        }

        class AnyPage(LinkedPage):
            def next_page_url(self) -> str:
                if isinstance(self.body, BareArray):
                    return ""
                return super().next_page_url()

        with pytest.raises(UnexpectedBodyShapeError):
            asyncio.run(Pager(FakeFetcher(bodies), BASE, AnyPage).all_pages())

    def test_field_name_change_uses_last_name(self, caplog: pytest.LogCaptureFixture) -> None:
        bodies = {
            BASE: {"old": [1], "links": [{"rel": "next", "href": f"{BASE}?page=2"}]},
            f"{BASE}?page=2": {"new": [2]},
        }
        with caplog.at_level(logging.WARNING, logger="pagerkit.pagination.aggregate"):
            page = asyncio.run(Pager(FakeFetcher(bodies), BASE, LinkedPage).all_pages())
        assert page.body.raw == {"new": [1, 2]}
        assert "list field changed" in caplog.text

    def test_empty_list_field_next_to_items(self) -> None:
        fetcher = FakeFetcher({BASE: {"tags": [], "items": [1, 2]}})
        page = asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())
        assert page.body.raw == {"items": [1, 2]}

    def test_walk_closed_when_merge_fails(self) -> None:
        bodies = {
            BASE: {"items": [1], "items_links": [{"rel": "next", "href": f"{BASE}?page=2"}]},
            f"{BASE}?page=2": [2],
        }
        closed: list[bool] = []

        class TrackingPager(Pager):
            async def pages(self):
                try:
                    async for page in super().pages():
                        yield page
                finally:
                    closed.append(True)

        class AnyPage(LinkedPage):
            def next_page_url(self) -> str:
                if isinstance(self.body, BareArray):
                    return ""
                return super().next_page_url()

        async def main() -> list[bool]:
            with pytest.raises(UnexpectedBodyShapeError):
                await TrackingPager(FakeFetcher(bodies), BASE, AnyPage).all_pages()
            # Checked before asyncio.run finalizes leftover generators.
            return list(closed)

        assert asyncio.run(main()) == [True]

    def test_empty_listing(self) -> None:
        fetcher = FakeFetcher({BASE: {"items": []}})
        page = asyncio.run(Pager(fetcher, BASE, LinkedPage).all_pages())
        assert page.body.raw == {"items": []}
        assert page.is_empty()

    def test_transport_error_aborts(self) -> None:
        bodies = {BASE: {"items": [1], "items_links": [{"rel": "next", "href": f"{BASE}?page=9"}]}}
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(Pager(FakeFetcher(bodies), BASE, LinkedPage).all_pages())
