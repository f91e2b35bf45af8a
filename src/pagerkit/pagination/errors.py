from __future__ import annotations


class PaginationError(Exception):
    """Base class for errors raised by the pagination engine."""


class UnexpectedBodyShapeError(PaginationError):
    def __init__(self, *, expected: str, actual: str, url: str = "") -> None:
        self.expected = expected
        self.actual = actual
        self.url = url
        msg = f"unexpected body shape: expected {expected}, got {actual}"
        if url:
            msg = f"{msg} (url={url})"
        super().__init__(msg)


class PageDecodeError(PaginationError):
    """A fetched body could not be turned into a page."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"failed to decode page at {url or '<unknown url>'}: {reason}")


class NextPageURLError(PaginationError):
    """The next-page indicator of a page is malformed."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"cannot determine next page after {url or '<unknown url>'}: {reason}")
