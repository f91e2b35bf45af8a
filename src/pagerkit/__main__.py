from __future__ import annotations

import argparse
import asyncio

from pagerkit.app import run_app
from pagerkit.config import parse_header_pairs


def positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {raw!r}") from None
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def main() -> None:
    parser = argparse.ArgumentParser(description="Walk a paginated HTTP listing")
    parser.add_argument(
        "url",
        help="Listing URL, absolute or relative to PAGERKIT_BASE_URL",
    )
    parser.add_argument(
        "--style",
        choices=["linked", "marker", "single"],
        default="linked",
        help="linked: next URL in a *_links field; marker: next URL from the last item; single: never paginated",
    )
    parser.add_argument(
        "--mode",
        choices=["each", "all"],
        default="each",
        help="each: print items page by page; all: fetch every page, then print the merged listing",
    )
    parser.add_argument(
        "--items-field",
        default=None,
        help="Name of the list field in JSON object bodies (default: first list field)",
    )
    parser.add_argument(
        "--marker-field",
        default=None,
        help="For marker style, the item field used as the next marker (e.g. id or name)",
    )
    parser.add_argument(
        "--max-pages",
        type=positive_int,
        default=None,
        help="In each mode, stop after N pages (default: no limit)",
    )
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        help="Extra request header 'Name: value' (repeatable)",
    )
    args = parser.parse_args()

    headers: dict[str, str] = {}
    for raw in args.header:
        headers.update(parse_header_pairs(raw))

    asyncio.run(
        run_app(
            url=args.url,
            style=args.style,
            mode=args.mode,
            items_field=args.items_field,
            marker_field=args.marker_field,
            max_pages=args.max_pages,
            headers=headers,
        )
    )


if __name__ == "__main__":
    main()
