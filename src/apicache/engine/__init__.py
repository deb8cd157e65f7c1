"""Caching decision engine.

:class:`CacheEngine` decides per request whether to serve a stored
response, call the network under a wall-clock timeout, or fall back to a
stale backup. :class:`CachingTransport` plugs the engine into any
:class:`httpx.Client` as transport middleware.
"""

from apicache.engine.engine import CacheEngine, CacheState, RequestKeys
from apicache.engine.transport import CachingTransport

__all__ = ["CacheEngine", "CacheState", "CachingTransport", "RequestKeys"]
