from __future__ import annotations

from functools import lru_cache

from .apollo import ApolloClient


@lru_cache(maxsize=1)
def get_apollo_client() -> ApolloClient:
    """Process-wide Apollo client; stateless, so one instance is shared."""
    return ApolloClient()


__all__ = ["ApolloClient", "get_apollo_client"]
