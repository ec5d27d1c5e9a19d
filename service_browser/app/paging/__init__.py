"""
Paging core.

Decides, per request, whether to start a collection over, replay the
current page or advance, and keeps the session's cached token set coherent
with the page size and order that define the collection.
"""

from .parameters import ParameterResolver
from .tokens import TokenResolver, invalidate_tokens
from .orchestrator import PageOrchestrator, SessionLocks

__all__ = [
    "ParameterResolver",
    "TokenResolver",
    "invalidate_tokens",
    "PageOrchestrator",
    "SessionLocks",
]
