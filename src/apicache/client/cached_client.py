"""Synchronous HTTP client with transparent response caching.

This module provides :class:`CachedClient`, a thin wrapper around
:class:`httpx.Client` whose transport is a
:class:`~apicache.engine.CachingTransport`. GET requests to registered
hosts go through the decision engine; every other request is sent as-is.

See Also:
    :class:`~apicache.engine.CacheEngine` for the caching decisions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from apicache.engine import CacheEngine, CachingTransport
from apicache.engine.engine import ExceptionCallback
from apicache.models import GlobalConfig


class CachedClient:
    """Synchronous HTTP client backed by the response cache.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        config: Effective configuration (see :func:`~apicache.config.resolve_config`).
        engine: Optional pre-built engine. When ``None``, one is built from
            *config* and closed together with the client.
        transport: Transport used for live calls. Defaults to
            :class:`httpx.HTTPTransport`.
        base_url: Prefix for relative request URLs.
        logger: Optional sink for cache decision messages.
        exception_callback: Forwarded to the engine when it is built here.

    Example::

        with CachedClient(resolve_config()) as client:
            response = client.get("https://api.example.com/users")
    """

    def __init__(
        self,
        config: GlobalConfig,
        engine: Optional[CacheEngine] = None,
        transport: Optional[httpx.BaseTransport] = None,
        base_url: str = "",
        logger: Optional[logging.Logger] = None,
        exception_callback: Optional[ExceptionCallback] = None,
    ) -> None:
        self._config = config
        self._owns_engine = engine is None
        self._engine = engine or CacheEngine.from_config(
            config, logger=logger, exception_callback=exception_callback
        )
        self._transport = transport
        self._base_url = base_url
        self._client: Optional[httpx.Client] = None

    @property
    def engine(self) -> CacheEngine:
        return self._engine

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> CachedClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            transport=CachingTransport(self._engine, self._transport),
            timeout=self._config.caching.timeout,
            follow_redirects=True,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None
        if self._owns_engine:
            self._engine.close()

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request through the caching transport.

        Args:
            method: HTTP method. Only GET is eligible for caching.
            url: Absolute URL, or a path relative to ``base_url``.
            params: Query parameters.
            headers: Extra request headers.
            **kwargs: Forwarded to :meth:`httpx.Client.request`.

        Returns:
            The :class:`httpx.Response`. Its ``extensions["apicache"]``
            describes how the response was obtained.

        Raises:
            NoResponseError: The upstream call failed and no backup exists.
            CacheStoreError: The cache store could not be read or written.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"
        return self._client.request(method, url, params=params, headers=headers, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request."""
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request. Never cached."""
        return self.request("POST", url, **kwargs)
