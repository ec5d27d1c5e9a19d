"""
Value types for browsing paginated collections.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class CollectionOrder(str, Enum):
    """Sort order understood by the remote listing service."""
    ASC = "asc"
    DESC = "desc"


class NavigationIntent(str, Enum):
    """Requested movement through a collection."""
    FIRST = "first"
    NEXT = "next"
    UNSPECIFIED = "unspecified"  # replay the current page


@dataclass(frozen=True)
class QueryParameters:
    """Parameters that define a collection generation.

    ``None`` means "use the cached value, or the default".
    """
    page_size: Optional[int] = None
    order: Optional[CollectionOrder] = None


@dataclass(frozen=True)
class StartFresh:
    """Fetch the first page of a new collection."""
    params: QueryParameters


@dataclass(frozen=True)
class Resume:
    """Fetch the page identified by a continuation token."""
    token: bytes


FetchOperation = Union[StartFresh, Resume]


@dataclass
class PageResult:
    """One page returned by the listing service.

    ``current_token`` identifies the page itself so it can be replayed;
    ``next_token`` is absent on the last page.
    """
    items: List[Any]
    current_token: bytes
    next_token: Optional[bytes] = None


@dataclass
class RenderedPage:
    """Page handed back to the HTTP layer."""
    collection: str
    items: List[Any]
    has_next_page: bool
    is_first_page: bool
    page_size: Optional[int] = None
    order: Optional[CollectionOrder] = None


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of a browsable remote collection."""
    name: str
    path: str
    default_page_size: int
    supports_order: bool = True
    headers: Dict[str, str] = field(default_factory=dict)
