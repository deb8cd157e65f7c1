"""httpx transport middleware that routes requests through the decision engine.

:class:`CachingTransport` wraps any :class:`httpx.BaseTransport` and hands
each request to :meth:`~apicache.engine.CacheEngine.perform` with the inner
transport's ``handle_request`` as the live call, so an existing client gains
caching by swapping its transport rather than patching its internals::

    client = httpx.Client(transport=CachingTransport(engine))
"""

from __future__ import annotations

from typing import Optional

import httpx

from apicache.engine.engine import CacheEngine


class CachingTransport(httpx.BaseTransport):
    """Transport that serves cacheable GET requests through a :class:`CacheEngine`.

    Args:
        engine: The decision engine. Closing the transport does not close
            the engine; its owner does that.
        transport: The transport performing live calls. Defaults to a
            plain :class:`httpx.HTTPTransport`.
    """

    def __init__(
        self,
        engine: CacheEngine,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._engine = engine
        self._transport = transport or httpx.HTTPTransport()

    @property
    def engine(self) -> CacheEngine:
        return self._engine

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self._engine.perform(request, self._transport.handle_request)

    def close(self) -> None:
        self._transport.close()
