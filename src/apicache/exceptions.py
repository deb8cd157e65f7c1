"""Exception hierarchy for apicache.

All exceptions inherit from :class:`ApicacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apicache.exit_codes`.
The top-level error handler in :func:`apicache.app.main` catches
``ApicacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    ApicacheError (exit 1)
    +-- ConfigError          (exit 1)
    +-- RegistrationError    (exit 2)
    +-- CacheStoreError      (exit 5)
    |   +-- CacheDecodeError (exit 5)
    +-- NoResponseError      (exit 6)

An ineligible request is not an error: it simply bypasses the cache.
"""

from __future__ import annotations

from typing import Optional

from apicache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_RESPONSE,
    EXIT_STORE_ERROR,
)


class ApicacheError(Exception):
    """Base exception for all apicache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`apicache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(ApicacheError):
    """Raised for configuration problems (unreadable or invalid config JSON, bad env values)."""

    exit_code = EXIT_GENERIC_FAILURE


class RegistrationError(ApicacheError):
    """Raised when a host is registered without a name or without its required options."""

    exit_code = EXIT_INVALID_USAGE


class CacheStoreError(ApicacheError):
    """Raised when the file store fails for any reason other than a missing entry.

    Args:
        message: Human-readable error description.
        key: The cache key being accessed, when known.
    """

    exit_code = EXIT_STORE_ERROR

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class CacheDecodeError(CacheStoreError):
    """Raised when a stored entry exists but does not contain valid JSON.

    Kept separate from a cache miss so that a corrupt entry is never
    silently treated as "absent".
    """


class NoResponseError(ApicacheError):
    """Raised when the upstream call failed and no backup response was cached.

    This is the only outcome of the decision engine that propagates an error
    to the caller instead of returning a response.

    Args:
        message: Human-readable error description.
        cache_key: Normalized URI the request was cached under.
        host: Host of the failed request.
    """

    exit_code = EXIT_NO_RESPONSE

    def __init__(self, message: str, cache_key: str, host: Optional[str] = None):
        super().__init__(message)
        self.cache_key = cache_key
        self.host = host
