from pagerkit.pagination.body import (
    BareArray,
    BodyValue,
    ByteStream,
    KeyedObject,
    UnrecognizedBody,
    classify_body,
)
from pagerkit.pagination.errors import (
    NextPageURLError,
    PageDecodeError,
    PaginationError,
    UnexpectedBodyShapeError,
)
from pagerkit.pagination.page import (
    LinkedPage,
    MarkerPage,
    Page,
    PageResult,
    SinglePage,
    page_result_from_parsed,
    page_result_from_response,
)
from pagerkit.pagination.pager import PageFactory, PageFetcher, Pager

__all__ = [
    "BareArray",
    "BodyValue",
    "ByteStream",
    "KeyedObject",
    "LinkedPage",
    "MarkerPage",
    "NextPageURLError",
    "Page",
    "PageDecodeError",
    "PageFactory",
    "PageFetcher",
    "PageResult",
    "Pager",
    "PaginationError",
    "SinglePage",
    "UnexpectedBodyShapeError",
    "UnrecognizedBody",
    "classify_body",
    "page_result_from_parsed",
    "page_result_from_response",
]
