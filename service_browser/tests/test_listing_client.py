"""
Unit tests for the OpenAI-style listing client.
"""

import httpx
import pytest

from shared.circuit_breaker import CircuitBreaker
from shared.errors import ConfigurationError, EncodingError, RemoteFetchError
from shared.retry import RetryConfig, RetryError
from service_browser.app.adapters.listing_client import (
    OpenAIListingClient,
    decode_cursor,
    encode_cursor,
    is_transient,
    is_upstream_failure,
)
from service_browser.app.domain.models import (
    CollectionOrder,
    QueryParameters,
    Resume,
    StartFresh,
)


def listing_payload(ids, has_more):
    return {
        "object": "list",
        "data": [{"id": item_id} for item_id in ids],
        "first_id": ids[0] if ids else None,
        "last_id": ids[-1] if ids else None,
        "has_more": has_more,
    }


class Recorder:
    """Transport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def make_client(assistants_spec):
    def _make(handler, spec=None, api_key="sk-test"):
        return OpenAIListingClient(
            "https://api.example.test/v1/",
            api_key,
            spec or assistants_spec,
            retry_config=RetryConfig(max_attempts=2, base_delay=0, jitter=False),
            circuit_breaker=CircuitBreaker(failure_threshold=5, recovery_timeout=60.0, name="test"),
            transport=httpx.MockTransport(handler),
        )
    return _make


class TestCursor:
    """Continuation token format."""

    def test_cursor_is_compact_sorted_json(self):
        token = encode_cursor(20, "desc", "asst_0001")
        assert token == b'{"after":"asst_0001","limit":20,"order":"desc"}'
        assert decode_cursor(token) == {"limit": 20, "order": "desc", "after": "asst_0001"}

    @pytest.mark.parametrize("token", [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"limit": 0}',
        b'{"limit": true}',
        b'{"after": 12}',
    ])
    def test_unreadable_cursor_raises_encoding_error(self, token):
        with pytest.raises(EncodingError):
            decode_cursor(token)


class TestFetch:
    """Fetching pages over HTTP."""

    @pytest.mark.asyncio
    async def test_start_fresh_sends_parameters_and_headers(self, make_client):
        recorder = Recorder(httpx.Response(200, json=listing_payload(["asst_3", "asst_2"], True)))
        client = make_client(recorder)

        result = await client.fetch(StartFresh(QueryParameters(page_size=2, order=CollectionOrder.DESC)))

        request = recorder.requests[0]
        assert request.url.path == "/v1/assistants"
        assert dict(request.url.params) == {"limit": "2", "order": "desc"}
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["OpenAI-Beta"] == "assistants=v2"

        assert [item["id"] for item in result.items] == ["asst_3", "asst_2"]
        assert result.current_token == encode_cursor(2, "desc", None)
        assert result.next_token == encode_cursor(2, "desc", "asst_2")

    @pytest.mark.asyncio
    async def test_resume_sends_after_and_keeps_token(self, make_client):
        recorder = Recorder(httpx.Response(200, json=listing_payload(["asst_1"], False)))
        client = make_client(recorder)
        token = encode_cursor(2, "desc", "asst_2")

        result = await client.fetch(Resume(token))

        assert dict(recorder.requests[0].url.params) == {"limit": "2", "after": "asst_2", "order": "desc"}
        assert result.current_token == token
        assert result.next_token is None

    @pytest.mark.asyncio
    async def test_unset_parameters_are_left_to_the_server(self, make_client):
        recorder = Recorder(httpx.Response(200, json=listing_payload([], False)))
        client = make_client(recorder)

        result = await client.fetch(StartFresh(QueryParameters()))

        assert dict(recorder.requests[0].url.params) == {}
        assert result.items == []
        assert result.next_token is None

    @pytest.mark.asyncio
    async def test_order_not_sent_for_unordered_collection(self, make_client, fine_tuning_spec):
        recorder = Recorder(httpx.Response(200, json=listing_payload(["ftjob_1"], True)))
        client = make_client(recorder, spec=fine_tuning_spec)

        await client.fetch(StartFresh(QueryParameters(page_size=10, order=CollectionOrder.ASC)))

        request = recorder.requests[0]
        assert request.url.path == "/v1/fine_tuning/jobs"
        assert dict(request.url.params) == {"limit": "10"}
        assert "OpenAI-Beta" not in request.headers

    @pytest.mark.asyncio
    async def test_next_token_falls_back_to_last_item(self, make_client):
        payload = listing_payload(["asst_5", "asst_4"], True)
        payload["last_id"] = None
        client = make_client(Recorder(httpx.Response(200, json=payload)))

        result = await client.fetch(StartFresh(QueryParameters(page_size=2)))

        assert decode_cursor(result.next_token)["after"] == "asst_4"


class TestFailures:
    """Error mapping."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self, make_client):
        recorder = Recorder(httpx.Response(200, json=listing_payload([], False)))
        client = make_client(recorder, api_key=None)

        with pytest.raises(ConfigurationError) as exc_info:
            await client.fetch(StartFresh(QueryParameters()))

        assert exc_info.value.message == "No API key."
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_unreadable_resume_token(self, make_client):
        recorder = Recorder(httpx.Response(200, json=listing_payload([], False)))
        client = make_client(recorder)

        with pytest.raises(EncodingError):
            await client.fetch(Resume(b"garbage"))

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_server_error_is_retried_then_surfaced(self, make_client):
        recorder = Recorder(httpx.Response(500, json={"error": "boom"}))
        client = make_client(recorder)

        with pytest.raises(RemoteFetchError) as exc_info:
            await client.fetch(StartFresh(QueryParameters()))

        assert len(recorder.requests) == 2
        assert exc_info.value.code == "REMOTE_FETCH_ERROR"
        assert exc_info.value.details == {"status_code": 500}

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, make_client):
        recorder = Recorder(
            httpx.Response(429, json={"error": "slow down"}),
            httpx.Response(200, json=listing_payload(["asst_1"], False)),
        )
        client = make_client(recorder)

        result = await client.fetch(StartFresh(QueryParameters()))

        assert len(recorder.requests) == 2
        assert result.items == [{"id": "asst_1"}]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried_and_does_not_trip_breaker(self, assistants_spec):
        recorder = Recorder(httpx.Response(400, json={"error": "unknown cursor"}))
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0, name="test", counts_as_failure=is_upstream_failure)
        client = OpenAIListingClient(
            "https://api.example.test/v1",
            "sk-test",
            assistants_spec,
            retry_config=RetryConfig(max_attempts=3, base_delay=0, jitter=False),
            circuit_breaker=breaker,
            transport=httpx.MockTransport(recorder),
        )

        with pytest.raises(RemoteFetchError) as exc_info:
            await client.fetch(Resume(encode_cursor(20, "desc", "asst_gone")))

        assert exc_info.value.details == {"status_code": 400}
        assert len(recorder.requests) == 1
        assert breaker.is_open() is False

    @pytest.mark.asyncio
    async def test_malformed_body_maps_to_remote_fetch_error(self, make_client):
        client = make_client(Recorder(httpx.Response(200, content=b"<html>")))

        with pytest.raises(RemoteFetchError):
            await client.fetch(StartFresh(QueryParameters()))

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, make_client):
        recorder = Recorder(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=listing_payload(["asst_1"], False)),
        )
        client = make_client(recorder)

        result = await client.fetch(StartFresh(QueryParameters()))

        assert len(recorder.requests) == 2
        assert [item["id"] for item in result.items] == ["asst_1"]

    @pytest.mark.asyncio
    async def test_exhausted_retries_map_to_remote_fetch_error(self, make_client):
        recorder = Recorder(httpx.ConnectError("connection refused"))
        client = make_client(recorder)

        with pytest.raises(RemoteFetchError) as exc_info:
            await client.fetch(StartFresh(QueryParameters()))

        assert len(recorder.requests) == 2
        assert exc_info.value.details == {"attempts": 2}

    @pytest.mark.asyncio
    async def test_open_circuit_blocks_calls(self, assistants_spec):
        recorder = Recorder(httpx.Response(503, json={}))
        client = OpenAIListingClient(
            "https://api.example.test/v1",
            "sk-test",
            assistants_spec,
            retry_config=RetryConfig(max_attempts=1, base_delay=0, jitter=False),
            circuit_breaker=CircuitBreaker(failure_threshold=1, recovery_timeout=60.0, name="test"),
            transport=httpx.MockTransport(recorder),
        )

        with pytest.raises(RemoteFetchError):
            await client.fetch(StartFresh(QueryParameters()))
        with pytest.raises(RemoteFetchError) as exc_info:
            await client.fetch(StartFresh(QueryParameters()))

        assert exc_info.value.details == {"circuit": "open"}
        assert len(recorder.requests) == 1


class TestFailureClassification:
    """Which failures are retried and which trip the breaker."""

    @pytest.mark.parametrize("status,transient,upstream", [
        (400, False, False),
        (404, False, False),
        (408, True, True),
        (429, True, True),
        (500, True, True),
        (503, True, True),
    ])
    def test_status_classification(self, status, transient, upstream):
        error = RemoteFetchError("listing.assistants", "boom", details={"status_code": status})
        assert is_transient(error) is transient
        assert is_upstream_failure(error) is upstream

    def test_transport_errors_are_transient(self):
        assert is_transient(httpx.ConnectError("refused")) is True

    def test_exhausted_retries_count_against_breaker(self):
        error = RetryError("gave up", last_exception=httpx.ConnectError("refused"), attempts=3)
        assert is_upstream_failure(error) is True
