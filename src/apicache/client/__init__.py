"""HTTP client module for apicache.

Provides :class:`CachedClient`, a context-managed :class:`httpx.Client`
whose transport routes GET requests through the caching decision engine.

Example::

    from apicache.client import CachedClient

    with CachedClient(config) as client:
        resp = client.get("https://api.example.com/users")
"""

from apicache.client.cached_client import CachedClient

__all__ = ["CachedClient"]
