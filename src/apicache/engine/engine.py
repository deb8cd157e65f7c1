"""The caching decision engine.

:class:`CacheEngine` wraps a ``send(request) -> response`` callable and
decides, per request, whether to serve a stored response, perform a bounded
live call, or fall back to a stale backup. The per-request state machine::

    DISABLED ----------------------------------------------> send() as-is
    CHECK_CACHE --hit--> stored response
        |
       miss
        v
    FETCHING --2xx--> STORED (primary entry + backup member)
        |--redirect--> live response as-is, not stored
        |
     other non-2xx / error / timeout
        v
    FALLBACK --backup--> STORED (stale, short TTL)
        |--degraded response--> live response as-is
        '--error--> FAILED (NoResponseError)

Every response returned by :meth:`CacheEngine.perform` carries an
``"apicache"`` entry in ``response.extensions`` describing the outcome.
"""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from apicache.config import resolve_root_dir
from apicache.engine.serialization import entry_to_response, response_to_entry
from apicache.exceptions import NoResponseError
from apicache.models import CachingConfig, GlobalConfig, HostPolicy
from apicache.normalizer import normalize, uri_hash
from apicache.registry import HostRegistry
from apicache.store import FileStore

SendRequest = Callable[[httpx.Request], httpx.Response]
ExceptionCallback = Callable[[BaseException, str, str], Any]

CACHEABLE_METHODS = frozenset({"GET"})
EXTENSION_KEY = "apicache"


class CacheState(str, enum.Enum):
    """States a request passes through inside :meth:`CacheEngine.perform`."""

    DISABLED = "disabled"
    CHECK_CACHE = "check_cache"
    FETCHING = "fetching"
    STORED = "stored"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass(frozen=True)
class RequestKeys:
    """Cache addressing computed once per request."""

    normalized_uri: str
    uri_hash: str
    host: Optional[str]
    policy: HostPolicy

    @property
    def backup_bucket(self) -> str:
        return self.normalized_uri


class CacheEngine:
    """Per-request cache decisions over a :class:`~apicache.store.FileStore`.

    Args:
        config: Caching switch, upstream timeout and stale-backup TTL.
        store: Primary store holding one entry per normalized URI.
        registry: Hosts eligible for caching.
        backup_store: Store holding the backup buckets. Defaults to
            *store*; a separate store lets backups outlive primary entries.
        logger: Optional sink for cache decision messages.
        exception_callback: Called as ``callback(error, key_name,
            normalized_uri)`` whenever the upstream call raises. Its outcome
            never changes the decision.
        max_workers: Size of the thread pool running upstream calls.

    Example::

        engine = CacheEngine(CachingConfig(enabled=True), FileStore("api", tmp), registry)
        response = engine.perform(request, transport.handle_request)
    """

    def __init__(
        self,
        config: CachingConfig,
        store: FileStore,
        registry: HostRegistry,
        backup_store: Optional[FileStore] = None,
        logger: Optional[logging.Logger] = None,
        exception_callback: Optional[ExceptionCallback] = None,
        max_workers: int = 8,
    ) -> None:
        self._config = config
        self._store = store
        self._backup_store = backup_store or store
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)
        self._exception_callback = exception_callback
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: GlobalConfig,
        logger: Optional[logging.Logger] = None,
        exception_callback: Optional[ExceptionCallback] = None,
    ) -> CacheEngine:
        """Build an engine, its stores and its registry from *config*."""
        root = resolve_root_dir(config)
        store = FileStore(
            config.store.domain,
            root,
            ttl=config.store.ttl_seconds,
            suffix=config.store.file_suffix,
        )
        backup_store = FileStore(
            config.backup_domain(),
            root,
            ttl=config.backup.ttl_seconds,
            suffix=config.store.file_suffix,
        )
        return cls(
            config.caching,
            store,
            HostRegistry(config.hosts.values()),
            backup_store=backup_store,
            logger=logger,
            exception_callback=exception_callback,
        )

    @property
    def config(self) -> CachingConfig:
        return self._config

    @property
    def store(self) -> FileStore:
        return self._store

    @property
    def backup_store(self) -> FileStore:
        return self._backup_store

    @property
    def registry(self) -> HostRegistry:
        return self._registry

    # ------------------------------------------------------------------ #
    # Decision
    # ------------------------------------------------------------------ #

    def is_cacheable(self, request: httpx.Request) -> bool:
        """Return whether *request* may be served from or stored in the cache."""
        return (
            self._config.enabled
            and request.method.upper() in CACHEABLE_METHODS
            and self._registry.is_registered(request.url.host)
        )

    def keys_for(self, request: httpx.Request) -> RequestKeys:
        """Compute the normalized URI and its hash for a cacheable *request*."""
        normalized = normalize(str(request.url))
        policy = self._registry.get(request.url.host)
        assert policy is not None, "keys_for() requires a registered host"
        return RequestKeys(
            normalized_uri=normalized,
            uri_hash=uri_hash(normalized),
            host=request.url.host or None,
            policy=policy,
        )

    def perform(self, request: httpx.Request, send: SendRequest) -> httpx.Response:
        """Serve *request* from the cache, the network, or the backup bucket.

        Args:
            request: The outgoing request.
            send: The wrapped transport call.

        Returns:
            The response to hand back to the caller.

        Raises:
            NoResponseError: The upstream call raised or timed out and no
                backup response exists.
            CacheStoreError: The store could not be read or written.
        """
        if not self.is_cacheable(request):
            self._logger.debug("[HTTPCache]: Caching off for %s %s", request.method, request.url)
            return _mark(send(request), CacheState.DISABLED)

        keys = self.keys_for(request)
        self._transition(CacheState.CHECK_CACHE, keys)
        cached = self._store.get(keys.normalized_uri)
        if cached is not None:
            self._log("Retrieving response from cache", keys)
            return _mark(
                entry_to_response(cached, request, keys.normalized_uri),
                CacheState.CHECK_CACHE,
                keys,
                from_cache=True,
            )

        self._transition(CacheState.FETCHING, keys)
        try:
            response = self._fetch(request, send)
        except Exception as exc:
            self._log(f"Upstream call failed ({exc.__class__.__name__}: {exc})", keys, logging.WARNING)
            self._notify(exc, keys)
            return self._fallback(request, keys, None, exc)

        if response.is_success:
            self._log("Storing good response in cache", keys)
            self._store_response(keys, response)
            return _mark(response, CacheState.STORED, keys)

        if response.is_redirect:
            # The client follows it; the target is cached under its own key.
            self._log(f"Passing redirect through (HTTP {response.status_code})", keys, logging.DEBUG)
            return _mark(response, CacheState.FETCHING, keys)

        self._log(f"Bad response from server (HTTP {response.status_code})", keys, logging.WARNING)
        return self._fallback(request, keys, response, None)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        """Stop the worker pool without waiting for abandoned calls, and close both stores."""
        with self._executor_guard:
            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None
        self._store.close()
        if self._backup_store is not self._store:
            self._backup_store.close()

    def __enter__(self) -> CacheEngine:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _fetch(self, request: httpx.Request, send: SendRequest) -> httpx.Response:
        """Run *send* on a worker thread, bounded by ``config.timeout`` seconds.

        On timeout the call is abandoned, not cancelled; its response is
        closed whenever it eventually arrives.
        """
        timeout = self._config.timeout
        future = self._get_executor().submit(_send_and_read, send, request)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.add_done_callback(_close_abandoned)
            raise httpx.TimeoutException(
                f"No response from {request.url.host} within {timeout}s", request=request
            ) from None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_guard:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="apicache-fetch"
                )
            return self._executor

    def _store_response(self, keys: RequestKeys, response: httpx.Response) -> None:
        entry = response_to_entry(response)
        self._store.set(keys.normalized_uri, entry)
        if self._config.store_backups:
            self._backup_store.hset(keys.backup_bucket, keys.uri_hash, entry)

    def _fallback(
        self,
        request: httpx.Request,
        keys: RequestKeys,
        response: Optional[httpx.Response],
        error: Optional[BaseException],
    ) -> httpx.Response:
        self._transition(CacheState.FALLBACK, keys)
        backup = self._backup_store.hget(keys.backup_bucket, keys.uri_hash)
        if backup is not None:
            self._log("Using backup", keys)
            recovered = entry_to_response(backup, request, keys.normalized_uri)
            self._store.set(keys.normalized_uri, backup)
            self._store.expire(keys.normalized_uri, self._config.stale_backup_ttl)
            return _mark(
                recovered,
                CacheState.STORED,
                keys,
                from_cache=True,
                stale=True,
            )
        if response is not None:
            self._log("No backup, returning degraded response", keys, logging.WARNING)
            return _mark(response, CacheState.FALLBACK, keys)

        self._transition(CacheState.FAILED, keys)
        self._log("No backup and bad response", keys, logging.ERROR)
        raise NoResponseError(
            "Bad response from API server or timeout occurred and no backup was in the cache "
            f"(key: {keys.normalized_uri}, host: {keys.host})",
            cache_key=keys.normalized_uri,
            host=keys.host,
        ) from error

    def _notify(self, error: BaseException, keys: RequestKeys) -> None:
        if self._exception_callback is None:
            return
        try:
            self._exception_callback(error, keys.policy.key_name, keys.normalized_uri)
        except Exception:
            self._logger.exception(
                "[HTTPCache]: Exception callback failed for %s", keys.normalized_uri
            )

    def _transition(self, state: CacheState, keys: RequestKeys) -> None:
        self._logger.debug("[HTTPCache]: state %s for %s", state.value, keys.normalized_uri)

    def _log(self, message: str, keys: RequestKeys, level: int = logging.INFO) -> None:
        self._logger.log(
            level, "[HTTPCache]: %s for %s - %r", message, keys.normalized_uri, keys.uri_hash
        )


def _send_and_read(send: SendRequest, request: httpx.Request) -> httpx.Response:
    response = send(request)
    try:
        response.read()
    except BaseException:
        response.close()
        raise
    return response


def _close_abandoned(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


def _mark(
    response: httpx.Response,
    state: CacheState,
    keys: Optional[RequestKeys] = None,
    from_cache: bool = False,
    stale: bool = False,
) -> httpx.Response:
    response.extensions = {
        **response.extensions,
        EXTENSION_KEY: {
            "state": state.value,
            "from_cache": from_cache,
            "stale": stale,
            "cache_key": keys.normalized_uri if keys else None,
            "uri_hash": keys.uri_hash if keys else None,
        },
    }
    return response
