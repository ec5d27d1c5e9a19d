"""
Shared fixtures for Browser service tests.
"""

import pytest

from service_browser.app.caching.store import InMemoryCacheStore
from service_browser.app.domain.models import CollectionSpec
from fakes import FakeListingService


@pytest.fixture
def records():
    """Ten assistants in ascending creation order."""
    return [{"id": f"asst_{index:02d}", "name": f"Assistant {index}"} for index in range(10)]


@pytest.fixture
def store():
    return InMemoryCacheStore()


@pytest.fixture
def assistants_spec():
    return CollectionSpec(
        name="assistants",
        path="/assistants",
        default_page_size=20,
        supports_order=True,
        headers={"OpenAI-Beta": "assistants=v2"},
    )


@pytest.fixture
def fine_tuning_spec():
    return CollectionSpec(
        name="fine_tuning_jobs",
        path="/fine_tuning/jobs",
        default_page_size=10,
        supports_order=False,
    )


@pytest.fixture
def listing(records):
    return FakeListingService(records)
