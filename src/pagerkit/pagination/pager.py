"""Driving a paginated listing one page at a time.

A Pager is built once per listing call and must not be shared between
concurrently running tasks: its first-page cache is unsynchronised. Concurrent
listings each get their own Pager.

Cancellation and deadlines come from the caller's task. The only await point
is the transport fetch, so ``asyncio.timeout(...)`` around ``each_page`` or
``all_pages`` aborts the in-flight request and nothing further is fetched.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from pagerkit.pagination.aggregate import accumulator_for
from pagerkit.pagination.errors import PageDecodeError, PaginationError
from pagerkit.pagination.page import Page, PageResult, SinglePage

log = logging.getLogger(__name__)


class PageFetcher(Protocol):
    async def fetch(self, url: str, *, headers: Mapping[str, str] | None = None) -> PageResult: ...


PageFactory = Callable[[PageResult], Page]
Visitor = Callable[[Page], "bool | Awaitable[bool]"]


@dataclass
class _PagerState:
    first_page: Page | None = None
    err: BaseException | None = None


class Pager:
    def __init__(
        self,
        client: PageFetcher | None,
        initial_url: str,
        create_page: PageFactory,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self.client = client
        self.initial_url = initial_url
        self.create_page = create_page
        self.headers: dict[str, str] = dict(headers or {})
        self._state = _PagerState()

    @classmethod
    def failed(cls, err: BaseException, *, create_page: PageFactory = SinglePage) -> "Pager":
        """A pager that re-raises ``err`` from every operation without any I/O.

        Resource packages return one of these when building the listing URL
        fails, so the caller sees that error instead of an empty listing.
        """
        pager = cls(None, "", create_page)
        pager._state.err = err
        return pager

    @property
    def err(self) -> BaseException | None:
        return self._state.err

    def with_page_creator(self, create_page: PageFactory) -> "Pager":
        """Same listing, different page type. Cached pages are not carried over."""
        pager = Pager(self.client, self.initial_url, create_page, headers=self.headers)
        pager._state.err = self._state.err
        return pager

    def with_headers(self, headers: Mapping[str, str]) -> "Pager":
        pager = Pager(self.client, self.initial_url, self.create_page, headers={**self.headers, **headers})
        pager._state.err = self._state.err
        return pager

    def _raise_if_failed(self) -> None:
        if self._state.err is not None:
            raise self._state.err

    def _build_page(self, result: PageResult) -> Page:
        try:
            return self.create_page(result)
        except PaginationError:
            raise
        except Exception as e:
            raise PageDecodeError(result.url, f"{type(e).__name__}: {e}") from e

    async def _fetch_page(self, url: str) -> Page:
        if self.client is None:
            raise RuntimeError("Pager has no client to fetch pages with")
        log.debug("fetching page url=%s", url)
        result = await self.client.fetch(url, headers=self.headers)
        return self._build_page(result)

    async def first_page(self) -> Page:
        """Fetch (once) and return the first page without consuming it.

        A following ``each_page``/``pages``/``all_pages`` call starts from the
        cached page instead of fetching it again.
        """
        self._raise_if_failed()
        if self._state.first_page is None:
            self._state.first_page = await self._fetch_page(self.initial_url)
        return self._state.first_page

    async def pages(self) -> AsyncIterator[Page]:
        """Yield each non-empty page in server order.

        Breaking out of the ``async for`` stops the walk; no further page is
        requested.
        """
        self._raise_if_failed()
        current_url = self.initial_url
        n = 0
        while True:
            if self._state.first_page is not None:
                page, self._state.first_page = self._state.first_page, None
            else:
                page = await self._fetch_page(current_url)

            if page.is_empty():
                log.debug("empty page ends listing after %d page(s) url=%s", n, current_url)
                return

            n += 1
            yield page

            current_url = page.next_page_url()
            if not current_url:
                log.debug("listing finished after %d page(s)", n)
                return

    async def each_page(self, visitor: Visitor) -> None:
        """Call ``visitor(page)`` for every page until it returns a falsy value.

        ``visitor`` may be a plain function or a coroutine function. Whatever it
        raises propagates unchanged.
        """
        self._raise_if_failed()
        walk = self.pages()
        try:
            async for page in walk:
                keep_going: Any = visitor(page)
                if inspect.isawaitable(keep_going):
                    keep_going = await keep_going
                if keep_going is None:
                    log.debug("visitor returned None for url=%s; stopping (return True to continue)", page.url)
                if not keep_going:
                    return
        finally:
            await walk.aclose()

    async def all_pages(self) -> Page:
        """Fetch every page and return one page holding all of their items.

        The result is built with the same ``create_page`` used for the fetched
        pages, from a PageResult whose body is the merged body and whose headers
        are this pager's extra headers.
        """
        self._raise_if_failed()
        first = await self.first_page()

        if isinstance(first, SinglePage):
            # Stays cached: repeated calls never refetch a single-page listing.
            return first

        acc = accumulator_for(first.body, url=first.url)
        walk = self.pages()
        try:
            async for page in walk:
                acc.add(page.body, url=page.url)
        finally:
            await walk.aclose()

        merged = first.result.with_body(acc.result(), headers=self.headers)
        log.debug("merged %d page(s) into one %s body", acc.pages, merged.body.kind)
        return self._build_page(merged)
