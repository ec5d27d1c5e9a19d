"""
Test doubles for the Browser service.
"""

import asyncio
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

from shared.errors import EncodingError
from service_browser.app.adapters.listing_client import ListingService
from service_browser.app.caching.store import InMemoryCacheStore
from service_browser.app.domain.models import FetchOperation, PageResult, StartFresh


class FakeListingService(ListingService):
    """In-memory listing double.

    Either replays a scripted queue of results/exceptions, or pages through
    ``records`` with tokens of the form ``cursor:<offset>:<size>:<order>``.
    """

    def __init__(
        self,
        records: Optional[List[Dict[str, Any]]] = None,
        *,
        script: Optional[List[Union[PageResult, Exception]]] = None,
        default_page_size: int = 20,
        gate: Optional[asyncio.Event] = None,
    ):
        self.records = records or []
        self.script: Deque[Union[PageResult, Exception]] = deque(script or [])
        self.default_page_size = default_page_size
        self.gate = gate
        self.calls: List[FetchOperation] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, operation: FetchOperation) -> PageResult:
        self.calls.append(operation)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)

            if self.script:
                outcome = self.script.popleft()
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
            return self._page(operation)
        finally:
            self.in_flight -= 1

    def _page(self, operation: FetchOperation) -> PageResult:
        if isinstance(operation, StartFresh):
            offset = 0
            size = operation.params.page_size or self.default_page_size
            order = operation.params.order.value if operation.params.order else "desc"
        else:
            offset, size, order = self._read_token(operation.token)

        ordered = self.records if order == "asc" else list(reversed(self.records))
        items = ordered[offset:offset + size]
        next_token = None
        if offset + size < len(ordered):
            next_token = self.token(offset + size, size, order)
        return PageResult(items=items, current_token=self.token(offset, size, order), next_token=next_token)

    @staticmethod
    def token(offset: int, size: int, order: str = "desc") -> bytes:
        return f"cursor:{offset}:{size}:{order}".encode()

    @staticmethod
    def _read_token(token: bytes):
        try:
            prefix, offset, size, order = token.decode().split(":")
        except (UnicodeDecodeError, ValueError) as exc:
            raise EncodingError("Unreadable test token") from exc
        if prefix != "cursor":
            raise EncodingError("Unreadable test token")
        return int(offset), int(size), order


def session_keys(store: InMemoryCacheStore, collection: str = "assistants", session_id: str = "s1") -> Dict[str, bytes]:
    """Cached entries of one session, keyed by bare entry name."""
    prefix = f"browser:{collection}:{session_id}:"
    return {
        key[len(prefix):]: value
        for key, value in store.snapshot().items()
        if key.startswith(prefix)
    }
