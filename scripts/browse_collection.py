#!/usr/bin/env python3
"""
Walk a remote collection page by page through the browser's paging core.

Useful for checking a listing endpoint and the token lifecycle from a
developer workstation: every page is requested exactly as the web front-end
would request it (first page, then ``navigate=next`` until the end), against
an in-memory session cache.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

from service_browser.app.adapters.listing_client import OpenAIListingClient
from service_browser.app.caching.store import InMemoryCacheStore
from service_browser.app.domain.models import CollectionOrder, NavigationIntent, QueryParameters
from service_browser.app.main import build_collections
from service_browser.app.paging.orchestrator import PageOrchestrator
from shared.config import get_config


async def browse(
    *,
    collection: str,
    base_url: str,
    api_key: Optional[str],
    size: Optional[int],
    order: Optional[CollectionOrder],
    max_pages: int,
) -> dict:
    """Fetch up to ``max_pages`` pages and return a summary."""
    config = get_config("browser", 8000)
    spec = build_collections(config)[collection]
    store = InMemoryCacheStore()
    orchestrator = PageOrchestrator(
        store,
        OpenAIListingClient(base_url, api_key, spec),
        spec,
        max_page_size=config.max_page_size,
    )

    pages = []
    intent = NavigationIntent.FIRST
    params = QueryParameters(page_size=size, order=order)
    while len(pages) < max_pages:
        page = await orchestrator.render_page("cli", params, intent)
        pages.append({
            "items": len(page.items),
            "first_id": page.items[0].get("id") if page.items else None,
            "last_id": page.items[-1].get("id") if page.items else None,
            "has_next_page": page.has_next_page,
        })
        if not page.has_next_page:
            break
        intent = NavigationIntent.NEXT
        params = QueryParameters()

    return {
        "collection": collection,
        "pages": pages,
        "total_items": sum(entry["items"] for entry in pages),
        "cached_keys": sorted(store.snapshot()),
    }


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Walk a remote collection through the paging core.")
    parser.add_argument("collection", choices=["assistants", "fine_tuning_jobs"], help="Collection to browse")
    parser.add_argument("--base-url", default=os.getenv("BROWSER_OPENAI_BASE_URL", "https://api.openai.com/v1"), help="Listing service base URL")
    parser.add_argument("--size", type=int, default=None, help="Page size")
    parser.add_argument("--order", choices=[order.value for order in CollectionOrder], default=None, help="Sort order")
    parser.add_argument("--max-pages", type=int, default=5, help="Stop after this many pages")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    try:
        summary = asyncio.run(
            browse(
                collection=args.collection,
                base_url=args.base_url,
                api_key=os.getenv("OPENAI_API_KEY"),
                size=args.size,
                order=CollectionOrder(args.order) if args.order else None,
                max_pages=args.max_pages,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[browse] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
