"""
Page orchestration: one request's path from parameters to a rendered page.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Dict, Optional

from shared.errors import EncodingError, MissingNextTokenError
from shared.logging import get_logger
from ..caching.session_cache import (
    FIRST_PAGE_TOKEN_KEY,
    NEXT_PAGE_TOKEN_KEY,
    PAGE_TOKEN_KEY,
    SessionCache,
)
from ..caching.store import CacheStore
from ..domain.models import (
    CollectionSpec,
    FetchOperation,
    NavigationIntent,
    PageResult,
    QueryParameters,
    RenderedPage,
    Resume,
    StartFresh,
)
from .parameters import ParameterResolver
from .tokens import TokenResolver, invalidate_tokens

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.listing_client import ListingService
    from shared.metrics import MetricsCollector


class SessionLocks:
    """Per-session mutual exclusion within one process.

    Locks are created on demand and dropped once nobody holds or waits on
    them.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class PageOrchestrator:
    """Resolves, fetches and commits one page of a collection per request."""

    def __init__(
        self,
        store: CacheStore,
        listing: "ListingService",
        collection: CollectionSpec,
        *,
        max_page_size: Optional[int] = None,
        locks: Optional[SessionLocks] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.listing = listing
        self.collection = collection
        self.max_page_size = max_page_size
        self.locks = locks
        self.metrics = metrics
        self.logger = get_logger("browser.orchestrator")

    async def render_page(
        self,
        session_id: str,
        requested: QueryParameters,
        intent: NavigationIntent = NavigationIntent.UNSPECIFIED,
    ) -> RenderedPage:
        """Fetch the page the caller navigated to and update the session.

        Cache changes are staged and committed only after the fetch succeeds,
        so any failure leaves the session exactly as it was.
        """
        if self.locks is None:
            return await self._render(session_id, requested, intent)

        async with self.locks.hold(f"{self.collection.name}:{session_id}"):
            return await self._render(session_id, requested, intent)

    async def _render(
        self,
        session_id: str,
        requested: QueryParameters,
        intent: NavigationIntent,
    ) -> RenderedPage:
        cache = SessionCache(self.store, self.collection.name, session_id)

        resolver = ParameterResolver(
            cache,
            self.collection.default_page_size,
            max_page_size=self.max_page_size,
            metrics=self.metrics,
        )
        effective, changed = await resolver.resolve(requested)

        if changed:
            invalidate_tokens(cache)
            if self.metrics:
                self.metrics.increment_counter("token_invalidations_total", collection=self.collection.name)

        token = await TokenResolver(cache).resolve(intent)
        result = await self._fetch(cache, effective, token, intent)

        first_token = await cache.get(FIRST_PAGE_TOKEN_KEY)
        cache.set(PAGE_TOKEN_KEY, result.current_token)
        if first_token is None:
            first_token = result.current_token
            cache.set(FIRST_PAGE_TOKEN_KEY, first_token)

        if result.next_token is not None:
            cache.set(NEXT_PAGE_TOKEN_KEY, result.next_token)
        else:
            cache.remove(NEXT_PAGE_TOKEN_KEY)

        await cache.commit()

        page = RenderedPage(
            collection=self.collection.name,
            items=list(result.items),
            has_next_page=result.next_token is not None,
            is_first_page=result.current_token == first_token,
            page_size=effective.page_size,
            order=effective.order,
        )
        self.logger.info(
            "Rendered page",
            collection=self.collection.name,
            intent=intent.value,
            items=len(page.items),
            has_next_page=page.has_next_page,
            is_first_page=page.is_first_page,
        )
        return page

    async def _fetch(
        self,
        cache: SessionCache,
        effective: QueryParameters,
        token: Optional[bytes],
        intent: NavigationIntent,
    ) -> PageResult:
        if token is None:
            return await self._timed_fetch(StartFresh(effective))

        try:
            return await self._timed_fetch(Resume(token))
        except EncodingError as exc:
            self.logger.warning(
                "Cached continuation token rejected",
                collection=self.collection.name,
                intent=intent.value,
                error=exc.message,
            )
            if self.metrics:
                self.metrics.increment_counter("cache_decode_errors_total", key="ContinuationToken")

            if intent == NavigationIntent.NEXT:
                # An unreadable next token is a missing one; only that entry is dropped
                cache.discard()
                cache.remove(NEXT_PAGE_TOKEN_KEY)
                await cache.commit()
                raise MissingNextTokenError(details={"collection": self.collection.name}) from exc

            # Replaying an unreadable current page starts the collection over
            invalidate_tokens(cache)
            return await self._timed_fetch(StartFresh(effective))

    async def _timed_fetch(self, operation: FetchOperation) -> PageResult:
        mode = "fresh" if isinstance(operation, StartFresh) else "resume"
        start = time.perf_counter()
        outcome = "error"
        try:
            result = await self.listing.fetch(operation)
            outcome = "ok"
            return result
        finally:
            if self.metrics:
                self.metrics.increment_counter(
                    "page_fetches_total",
                    collection=self.collection.name,
                    mode=mode,
                    result=outcome,
                )
                self.metrics.observe_histogram(
                    "page_fetch_duration_seconds",
                    time.perf_counter() - start,
                    collection=self.collection.name,
                    mode=mode,
                )
