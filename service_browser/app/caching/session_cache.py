"""
Staged, namespaced view over one session's cache entries.

Reads fall through to the store unless the entry was written or removed
earlier in the same request. Nothing reaches the store until ``commit``,
which hands the whole batch to ``CacheStore.apply``.
"""

from typing import Dict, Optional, Set

from shared.logging import get_logger
from ..domain.models import CollectionOrder
from .codec import decode_order, decode_page_size, encode_order, encode_page_size
from .store import CacheStore

PAGE_SIZE_KEY = "PageSize"
ORDER_KEY = "Order"
PAGE_TOKEN_KEY = "PageToken"
FIRST_PAGE_TOKEN_KEY = "FirstPageToken"
NEXT_PAGE_TOKEN_KEY = "NextPageToken"

TOKEN_KEYS = (PAGE_TOKEN_KEY, FIRST_PAGE_TOKEN_KEY, NEXT_PAGE_TOKEN_KEY)
ALL_KEYS = (PAGE_SIZE_KEY, ORDER_KEY) + TOKEN_KEYS

KEY_PREFIX = "browser"


class SessionCache:
    """Entries of one session for one collection."""

    def __init__(self, store: CacheStore, collection: str, session_id: str):
        self.store = store
        self.collection = collection
        self.session_id = session_id
        self.namespace = f"{KEY_PREFIX}:{collection}:{session_id}"
        self.logger = get_logger("browser.session_cache")

        self._writes: Dict[str, bytes] = {}
        self._removals: Set[str] = set()

    def key(self, name: str) -> str:
        return f"{self.namespace}:{name}"

    async def get(self, name: str) -> Optional[bytes]:
        if name in self._writes:
            return self._writes[name]
        if name in self._removals:
            return None
        return await self.store.get(self.key(name))

    def set(self, name: str, value: bytes) -> None:
        self._removals.discard(name)
        self._writes[name] = bytes(value)

    def remove(self, name: str) -> None:
        self._writes.pop(name, None)
        self._removals.add(name)

    async def get_page_size(self) -> Optional[int]:
        """Cached page size; raises ``EncodingError`` if the entry is corrupt."""
        raw = await self.get(PAGE_SIZE_KEY)
        return None if raw is None else decode_page_size(raw)

    def set_page_size(self, value: int) -> None:
        self.set(PAGE_SIZE_KEY, encode_page_size(value))

    async def get_order(self) -> Optional[CollectionOrder]:
        """Cached order; raises ``EncodingError`` if the entry is corrupt."""
        raw = await self.get(ORDER_KEY)
        return None if raw is None else decode_order(raw)

    def set_order(self, value: CollectionOrder) -> None:
        self.set(ORDER_KEY, encode_order(value))

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._writes or self._removals)

    async def commit(self) -> None:
        """Flush staged writes and removals to the store in one batch."""
        if not self.has_pending_changes:
            return

        writes = {self.key(name): value for name, value in self._writes.items()}
        removals = [self.key(name) for name in sorted(self._removals)]
        untouched = [self.key(name) for name in ALL_KEYS if name not in self._writes and name not in self._removals]
        await self.store.apply(writes, removals, touch=untouched)

        self.logger.debug(
            "Committed session cache changes",
            collection=self.collection,
            written=sorted(self._writes),
            removed=sorted(self._removals),
        )
        self.discard()

    def discard(self) -> None:
        """Drop staged changes without touching the store."""
        self._writes.clear()
        self._removals.clear()
