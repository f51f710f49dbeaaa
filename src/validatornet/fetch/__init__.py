"""
validatornet.fetch - Resilient fetching and result caching

    ResilientFetcher - retry loop that re-selects the active peer every attempt
    ResultCache      - TTL cache for network-wide query results
"""

from .cache import ResultCache, CacheEntry
from .fetcher import (
    ResilientFetcher,
    FetchOutcome,
    FetchState,
    FetchTrace,
    Transition,
)

__all__ = [
    "ResultCache",
    "CacheEntry",
    "ResilientFetcher",
    "FetchOutcome",
    "FetchState",
    "FetchTrace",
    "Transition",
]
