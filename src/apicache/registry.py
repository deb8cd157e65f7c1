"""Host registration for the caching decision engine.

A request is only eligible for caching when its host has a
:class:`~apicache.models.HostPolicy` in the :class:`HostRegistry`. Hosts
are normally registered once at startup, either from the ``hosts`` section
of the global config or by the application before it creates its client::

    registry = HostRegistry()
    registry.register("api.twitter.com", {"expire_in": 600, "key_name": "api-cache:twitter"})
    registry.register_base_url("https://api.github.com/v3", {"expire_in": 60, "key_name": "gh"})

Lookups never take a lock; registration swaps in a new mapping under one,
so concurrent readers always see a consistent table.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Optional

from pydantic import ValidationError

from apicache.exceptions import RegistrationError
from apicache.models import HostPolicy
from apicache.normalizer import request_host

REQUIRED_OPTIONS = ("expire_in", "key_name")


class HostRegistry:
    """Process-wide table mapping a host to its caching policy.

    Args:
        policies: Optional initial policies, e.g. ``GlobalConfig.hosts.values()``.
    """

    def __init__(self, policies: Optional[Iterable[HostPolicy]] = None) -> None:
        self._lock = threading.Lock()
        self._policies: Mapping[str, HostPolicy] = MappingProxyType({})
        for policy in policies or ():
            self.register_policy(policy)

    def register(self, host: str, options: Mapping[str, Any]) -> HostPolicy:
        """Register *host* with ``expire_in`` and ``key_name`` options.

        Args:
            host: Host name, e.g. ``"api.twitter.com"``.
            options: Mapping that must contain every key in
                :data:`REQUIRED_OPTIONS`.

        Returns:
            The registered :class:`~apicache.models.HostPolicy`.

        Raises:
            RegistrationError: If *host* is blank, an option is missing, or
                an option value is invalid.
        """
        if not host or not host.strip():
            raise RegistrationError(
                "You must provide a host that you are caching API responses for."
            )
        missing = [name for name in REQUIRED_OPTIONS if name not in options]
        if missing:
            raise RegistrationError(f"Missing some required options: {', '.join(missing)}")
        try:
            policy = HostPolicy(
                host=host.strip().lower(),
                expire_in=options["expire_in"],
                key_name=options["key_name"],
            )
        except ValidationError as exc:
            raise RegistrationError(f"Invalid options for host {host!r}: {exc}") from exc
        return self.register_policy(policy)

    def register_base_url(self, base_url: str, options: Mapping[str, Any]) -> HostPolicy:
        """Register the host of *base_url*.

        Falls back to an explicit ``host`` entry in *options* when the URL
        has no host component.
        """
        host = request_host(base_url) if base_url else None
        remaining = dict(options)
        explicit = remaining.pop("host", None)
        return self.register(host or explicit or "", remaining)

    def register_policy(self, policy: HostPolicy) -> HostPolicy:
        """Add an already-built policy. A later registration replaces an earlier one."""
        with self._lock:
            updated = dict(self._policies)
            updated[policy.host.lower()] = policy
            self._policies = MappingProxyType(updated)
        return policy

    def unregister(self, host: str) -> bool:
        """Remove *host*; returns whether it was registered."""
        with self._lock:
            if host.lower() not in self._policies:
                return False
            updated = dict(self._policies)
            del updated[host.lower()]
            self._policies = MappingProxyType(updated)
        return True

    def get(self, host: Optional[str]) -> Optional[HostPolicy]:
        """Return the policy for *host*, or ``None`` if it is not registered."""
        if not host:
            return None
        return self._policies.get(host.lower())

    def is_registered(self, host: Optional[str]) -> bool:
        return self.get(host) is not None

    def policies(self) -> list[HostPolicy]:
        """Return all registered policies sorted by host."""
        return sorted(self._policies.values(), key=lambda p: p.host)

    def __contains__(self, host: object) -> bool:
        return isinstance(host, str) and self.is_registered(host)

    def __len__(self) -> int:
        return len(self._policies)
