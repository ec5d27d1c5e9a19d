"""
Resolution of page size and order against the session cache.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Tuple

from shared.errors import EncodingError, ValidationError
from shared.logging import get_logger
from ..caching.session_cache import ORDER_KEY, PAGE_SIZE_KEY, SessionCache
from ..domain.models import CollectionOrder, QueryParameters

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ParameterResolver:
    """Merges caller parameters with cached ones and reports changes."""

    def __init__(
        self,
        cache: SessionCache,
        default_page_size: int,
        *,
        max_page_size: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.metrics = metrics
        self.logger = get_logger("browser.parameters")

    async def resolve(self, requested: QueryParameters) -> Tuple[QueryParameters, bool]:
        """Return the effective parameters and whether any of them changed.

        Every caller-supplied value is written back, changed or not. A cached
        value that cannot be decoded is dropped and counts as a change, since
        the tokens cached beside it belong to an unknown generation.
        """
        self._validate(requested)

        page_size, size_changed = await self._resolve_page_size(requested.page_size)
        order, order_changed = await self._resolve_order(requested.order)

        effective = QueryParameters(page_size=page_size, order=order)
        changed = size_changed or order_changed
        if changed:
            self.logger.info(
                "Browsing parameters changed",
                collection=self.cache.collection,
                page_size=page_size,
                order=order.value if order else None,
            )
        return effective, changed

    def _validate(self, requested: QueryParameters) -> None:
        size = requested.page_size
        if size is None:
            return
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValidationError("Page size must be a positive integer", details={"size": size})
        if self.max_page_size is not None and size > self.max_page_size:
            raise ValidationError(
                f"Page size must not exceed {self.max_page_size}",
                details={"size": size, "max_page_size": self.max_page_size}
            )

    async def _resolve_page_size(self, requested: Optional[int]) -> Tuple[int, bool]:
        cached, corrupt = await self._read_cached(PAGE_SIZE_KEY, self.cache.get_page_size)

        if requested is not None:
            self.cache.set_page_size(requested)
            return requested, corrupt or cached != requested

        if cached is not None:
            return cached, False
        return self.default_page_size, corrupt

    async def _resolve_order(self, requested: Optional[CollectionOrder]) -> Tuple[Optional[CollectionOrder], bool]:
        cached, corrupt = await self._read_cached(ORDER_KEY, self.cache.get_order)

        if requested is not None:
            self.cache.set_order(requested)
            return requested, corrupt or cached != requested

        # None leaves ordering to the remote service
        return cached, corrupt

    async def _read_cached(self, name: str, reader: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """Read a cached value, treating a decode failure as a miss."""
        try:
            return await reader(), False
        except EncodingError as exc:
            self.logger.warning(
                "Discarding undecodable cache entry",
                collection=self.cache.collection,
                key=name,
                error=exc.message,
            )
            if self.metrics:
                self.metrics.increment_counter("cache_decode_errors_total", key=name)
            self.cache.remove(name)
            return None, True
