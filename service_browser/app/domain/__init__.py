"""
Domain types for the Collection Browser.

Plain value objects passed between the paging core, the cache layer and the
listing adapter. Items inside a page are opaque to everything but the HTTP
layer.
"""

from .models import (
    CollectionOrder,
    CollectionSpec,
    FetchOperation,
    NavigationIntent,
    PageResult,
    QueryParameters,
    RenderedPage,
    Resume,
    StartFresh,
)

__all__ = [
    "CollectionOrder",
    "CollectionSpec",
    "FetchOperation",
    "NavigationIntent",
    "PageResult",
    "QueryParameters",
    "RenderedPage",
    "Resume",
    "StartFresh",
]
