"""
Adapters package for the Browser Service.

Contains the HTTP client for the remote listing service. The adapter owns:

- Base URL, auth header and request shape
- Minting and reading its own continuation tokens
- Retry policy and circuit breaker
- Mapping failures to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .listing_client import ListingService, OpenAIListingClient

__all__ = [
    "ListingService",
    "OpenAIListingClient",
]
