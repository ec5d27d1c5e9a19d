"""
Collection Browser service.
"""

import re
import uuid
from typing import Any, Dict, Optional

from fastapi import Query, Request, Response

from shared.base_service import BaseService
from shared.circuit_breaker import circuit_breaker_manager
from shared.config import ServiceConfig
from shared.errors import ConfigurationError
from shared.logging import set_session_context
from .adapters.listing_client import ListingService, OpenAIListingClient
from .caching.store import CacheStore, InMemoryCacheStore, RedisCacheStore
from .domain.models import (
    CollectionOrder,
    CollectionSpec,
    NavigationIntent,
    QueryParameters,
    RenderedPage,
)
from .paging.orchestrator import PageOrchestrator, SessionLocks

ASSISTANTS = "assistants"
FINE_TUNING_JOBS = "fine_tuning_jobs"

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def build_collections(config: ServiceConfig) -> Dict[str, CollectionSpec]:
    """Collections the browser exposes, keyed by name."""
    return {
        ASSISTANTS: CollectionSpec(
            name=ASSISTANTS,
            path="/assistants",
            default_page_size=config.assistants_page_size,
            supports_order=True,
            headers={"OpenAI-Beta": "assistants=v2"},
        ),
        FINE_TUNING_JOBS: CollectionSpec(
            name=FINE_TUNING_JOBS,
            path="/fine_tuning/jobs",
            default_page_size=config.fine_tuning_page_size,
            supports_order=False,
        ),
    }


def build_cache_store(config: ServiceConfig) -> CacheStore:
    """Create the session cache store selected by configuration."""
    backend = config.cache_backend.lower()
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "redis":
        return RedisCacheStore(config.redis_url, ttl_seconds=config.session_ttl_seconds)
    raise ConfigurationError(
        f"Unknown cache backend '{config.cache_backend}'",
        details={"setting": "BROWSER_CACHE_BACKEND"}
    )


class BrowserService(BaseService):
    """Browser service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache_store: Optional[CacheStore] = None,
        listing_clients: Optional[Dict[str, ListingService]] = None,
    ):
        super().__init__("browser", 8000, config)
        self.cache_store = cache_store or build_cache_store(self.config)
        self.session_locks = SessionLocks() if self.config.serialize_session_requests else None
        self.collections = build_collections(self.config)

        listing_clients = listing_clients or {}
        self.orchestrators: Dict[str, PageOrchestrator] = {
            name: PageOrchestrator(
                self.cache_store,
                listing_clients.get(name) or self._build_listing_client(spec),
                spec,
                max_page_size=self.config.max_page_size,
                locks=self.session_locks,
                metrics=self.metrics,
            )
            for name, spec in self.collections.items()
        }

        self._setup_browser_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.browser_service = self

    async def shutdown(self) -> None:
        await self.cache_store.close()

    def _build_listing_client(self, spec: CollectionSpec) -> ListingService:
        return OpenAIListingClient(
            self.config.openai_base_url,
            self.config.openai_api_key,
            spec,
            timeout=self.config.request_timeout_seconds,
        )

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"session_cache": "ok" if await self.cache_store.ping() else "unavailable"}

    def _session_id(self, request: Request, response: Response) -> str:
        """Return the caller's session id, issuing a new cookie when needed."""
        cookie_name = self.config.session_cookie_name
        session_id = request.cookies.get(cookie_name)
        if session_id and _SESSION_ID_PATTERN.match(session_id):
            return session_id

        session_id = uuid.uuid4().hex
        response.set_cookie(
            cookie_name,
            session_id,
            max_age=self.config.session_ttl_seconds,
            httponly=True,
            samesite="lax",
        )
        self.logger.info("Issued browsing session", session_id=session_id)
        return session_id

    async def browse(
        self,
        collection: str,
        request: Request,
        response: Response,
        params: QueryParameters,
        navigate: Optional[NavigationIntent],
    ) -> Dict[str, Any]:
        session_id = self._session_id(request, response)
        set_session_context(session_id, collection)

        page = await self.orchestrators[collection].render_page(
            session_id,
            params,
            navigate or NavigationIntent.UNSPECIFIED,
        )
        return self._page_payload(page)

    @staticmethod
    def _page_payload(page: RenderedPage) -> Dict[str, Any]:
        return {
            "collection": page.collection,
            "items": page.items,
            "has_next_page": page.has_next_page,
            "is_first_page": page.is_first_page,
            "page_size": page.page_size,
            "order": page.order.value if page.order else None,
        }

    def _setup_browser_routes(self):
        """Set up browsing routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": "browser",
                "message": "Collection Browser",
                "collections": sorted(self.collections),
            }

        @self.app.get("/assistants")
        async def browse_assistants(
            request: Request,
            response: Response,
            size: Optional[int] = Query(None, ge=1),
            order: Optional[CollectionOrder] = Query(None),
            navigate: Optional[NavigationIntent] = Query(None),
        ):
            """Browse assistants a page at a time."""
            params = QueryParameters(page_size=size, order=order)
            return await self.browse(ASSISTANTS, request, response, params, navigate)

        @self.app.get("/fine-tuning/jobs")
        async def browse_fine_tuning_jobs(
            request: Request,
            response: Response,
            size: Optional[int] = Query(None, ge=1),
            navigate: Optional[NavigationIntent] = Query(None),
        ):
            """Browse fine-tuning jobs a page at a time."""
            params = QueryParameters(page_size=size)
            return await self.browse(FINE_TUNING_JOBS, request, response, params, navigate)

        @self.app.get("/api/v1/circuit-breakers")
        async def get_circuit_breakers():
            return {"circuit_breakers": circuit_breaker_manager.get_all_states()}


def create_app():
    """Create FastAPI application."""
    service = BrowserService()
    return service.app


if __name__ == "__main__":
    service = BrowserService()
    service.run()
