"""
Remote listing client for the Collection Browser.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, get_circuit_breaker
from shared.errors import ConfigurationError, EncodingError, RemoteFetchError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception
from ..domain.models import CollectionSpec, FetchOperation, PageResult, Resume, StartFresh


class ListingService(ABC):
    """A remote, server-paginated collection."""

    @abstractmethod
    async def fetch(self, operation: FetchOperation) -> PageResult:
        """Fetch the first page of a new collection or resume from a token."""


def encode_cursor(limit: Optional[int], order: Optional[str], after: Optional[str]) -> bytes:
    """Mint a continuation token understood by ``OpenAIListingClient``."""
    payload = {"limit": limit, "order": order, "after": after}
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def decode_cursor(token: bytes) -> Dict[str, Any]:
    """Read a token minted by ``encode_cursor``."""
    try:
        payload = json.loads(token.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise EncodingError("Continuation token is not readable") from exc

    if not isinstance(payload, dict):
        raise EncodingError("Continuation token has an unexpected shape")

    limit = payload.get("limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
        raise EncodingError("Continuation token has an invalid limit", details={"limit": repr(limit)})

    for field in ("order", "after"):
        value = payload.get(field)
        if value is not None and not isinstance(value, str):
            raise EncodingError(f"Continuation token has an invalid {field}")

    return {"limit": limit, "order": payload.get("order"), "after": payload.get("after")}


TRANSIENT_STATUSES = frozenset({408, 429})


def is_transient(exc: BaseException) -> bool:
    """Whether another attempt at the same request may succeed."""
    if isinstance(exc, httpx.TransportError):
        return True
    status = getattr(exc, "details", {}).get("status_code")
    return isinstance(status, int) and (status in TRANSIENT_STATUSES or status >= 500)


def is_upstream_failure(exc: BaseException) -> bool:
    """Whether a failure reflects on the listing service rather than on the request."""
    if isinstance(exc, RetryError):
        return True
    status = getattr(exc, "details", {}).get("status_code")
    return not (isinstance(status, int) and 400 <= status < 500 and status not in TRANSIENT_STATUSES)


class OpenAIListingClient(ListingService):
    """Client for OpenAI-style ``GET /<collection>?limit=&order=&after=`` listings."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        collection: CollectionSpec,
        *,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.collection = collection
        self.timeout = timeout
        self.transport = transport
        self.service_name = f"listing.{collection.name}"
        self.logger = get_logger("browser.listing_client")

        self.retry_config = retry_config or RetryConfig(
            max_attempts=3,
            base_delay=0.5,
            max_delay=5.0,
            exponential_base=2.0,
            jitter=True
        )
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(
            self.service_name,
            failure_threshold=3,
            recovery_timeout=30.0,
            counts_as_failure=is_upstream_failure
        )

    async def fetch(self, operation: FetchOperation) -> PageResult:
        if not self.api_key:
            raise ConfigurationError("No API key.", details={"setting": "OPENAI_API_KEY"})

        if isinstance(operation, StartFresh):
            order = operation.params.order.value if operation.params.order else None
            cursor = {"limit": operation.params.page_size, "order": order, "after": None}
            current_token = encode_cursor(**cursor)
        elif isinstance(operation, Resume):
            cursor = decode_cursor(operation.token)
            current_token = operation.token
        else:
            raise TypeError(f"Unsupported fetch operation: {operation!r}")

        payload = await self._fetch_page(cursor)
        items = payload.get("data") or []

        next_token = None
        if payload.get("has_more") and items:
            last_id = payload.get("last_id") or items[-1].get("id")
            if last_id:
                next_token = encode_cursor(cursor["limit"], cursor["order"], last_id)

        return PageResult(items=items, current_token=current_token, next_token=next_token)

    def _query_params(self, cursor: Dict[str, Any]) -> Dict[str, Any]:
        params = {"limit": cursor["limit"], "after": cursor["after"]}
        if self.collection.supports_order:
            params["order"] = cursor["order"]
        return {key: value for key, value in params.items() if value is not None}

    async def _fetch_page(self, cursor: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the listing request with retry + circuit breaker + error handling."""
        params = self._query_params(cursor)
        url = f"{self.base_url}{self.collection.path}"

        async def _request() -> Dict[str, Any]:
            headers = {"Authorization": f"Bearer {self.api_key}", **self.collection.headers}
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, params=params, headers=headers)

            if response.status_code == 200:
                try:
                    data = response.json()
                except ValueError as exc:
                    raise RemoteFetchError(self.service_name, "Malformed listing response") from exc
                if not isinstance(data, dict):
                    raise RemoteFetchError(self.service_name, "Malformed listing response")
                self.logger.debug("Listing page retrieved", url=url, params=params)
                return data

            self.logger.error(
                "Listing request failed",
                url=url,
                params=params,
                status_code=response.status_code,
                response=response.text[:500]
            )
            raise RemoteFetchError(
                self.service_name,
                f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code}
            )

        send = retry_on_exception(
            (httpx.TransportError, RemoteFetchError),
            config=self.retry_config,
            retryable=is_transient
        )(_request)

        try:
            return await self.circuit_breaker.call(send)
        except RemoteFetchError:
            raise
        except RetryError as exc:
            if isinstance(exc.last_exception, RemoteFetchError):
                raise exc.last_exception from None
            self.logger.error("Listing service unreachable", error=str(exc.last_exception), params=params)
            raise RemoteFetchError(
                self.service_name,
                str(exc.last_exception),
                details={"attempts": exc.attempts}
            ) from exc
        except CircuitBreakerOpenException as exc:
            raise RemoteFetchError(self.service_name, str(exc), details={"circuit": "open"}) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Listing service error", error=str(exc), params=params)
            raise RemoteFetchError(self.service_name, str(exc)) from exc
