"""
Continuation token selection and invalidation.
"""

from typing import Optional

from shared.errors import MissingNextTokenError
from ..caching.session_cache import (
    NEXT_PAGE_TOKEN_KEY,
    PAGE_TOKEN_KEY,
    TOKEN_KEYS,
    SessionCache,
)
from ..domain.models import NavigationIntent


class TokenResolver:
    """Maps a navigation intent to the token to fetch with."""

    def __init__(self, cache: SessionCache):
        self.cache = cache

    async def resolve(self, intent: NavigationIntent) -> Optional[bytes]:
        """Return the token to resume from, or ``None`` to start fresh."""
        if intent == NavigationIntent.FIRST:
            return None

        if intent == NavigationIntent.NEXT:
            token = await self.cache.get(NEXT_PAGE_TOKEN_KEY)
            if token is None:
                raise MissingNextTokenError(details={"collection": self.cache.collection})
            return token

        return await self.cache.get(PAGE_TOKEN_KEY)


def invalidate_tokens(cache: SessionCache) -> None:
    """Drop every cached token of the session's current generation."""
    for name in TOKEN_KEYS:
        cache.remove(name)
