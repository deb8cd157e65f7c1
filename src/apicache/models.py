"""Canonical Pydantic models shared across all apicache modules.

This is the single source of truth for configuration shapes in the project.
The models fall into two groups:

**Policy models** -- registered per API host and consulted by the decision
engine: :class:`HostPolicy`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CachingConfig`, :class:`StoreConfig`, :class:`BackupConfig`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

All models use Pydantic v2. Configuration objects are created once at
startup and passed by reference into :class:`~apicache.engine.CacheEngine`;
nothing in the package mutates them afterwards.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Host policy ---


class HostPolicy(BaseModel):
    """Caching policy registered for a single API host.

    A host must have a policy before any of its requests become eligible
    for caching. Policies are immutable once created.

    Example::

        HostPolicy(host="api.twitter.com", expire_in=600, key_name="api-cache:twitter")
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, description="Host name the policy applies to")
    expire_in: int = Field(ge=0, description="Intended freshness window in seconds")
    key_name: str = Field(
        min_length=1,
        description="Label reported to the exception callback and in logs",
    )


# --- Configuration ---


class CachingConfig(BaseModel):
    """Process-wide switches read by the decision engine."""

    enabled: bool = Field(default=False, description="Global caching switch")
    timeout: float = Field(
        default=5.0, gt=0, description="Wall-clock bound on the upstream call in seconds"
    )
    stale_backup_ttl: int = Field(
        default=300,
        ge=0,
        description="Freshness window in seconds for a response recovered from backup",
    )
    store_backups: bool = Field(
        default=True,
        description="Copy every successful response into the backup bucket",
    )


class StoreConfig(BaseModel):
    """Location and expiry of the primary file store."""

    root_dir: Optional[str] = Field(
        default=None, description="Root of the cache tree (default: XDG cache dir)"
    )
    domain: str = Field(default="default", min_length=1)
    ttl_seconds: int = Field(
        default=0, ge=0, description="Store-wide TTL in seconds; 0 never expires"
    )
    file_suffix: str = Field(
        default=".json",
        description=(
            "Suffix appended to every entry file name; keeps /users and /users/1 "
            "from needing the same path. Empty restores the bare legacy layout."
        ),
    )


class BackupConfig(BaseModel):
    """Location and expiry of the backup store used for stale fallback."""

    domain: Optional[str] = Field(
        default=None, description="Backup domain (default: '<store.domain>-backup')"
    )
    ttl_seconds: int = Field(
        default=0, ge=0, description="Backup TTL in seconds; 0 never expires"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/apicache/config.json``.

    Loaded and saved by :func:`~apicache.config.load_global_config` and
    :func:`~apicache.config.save_global_config`. Environment variables
    override a few fields; see :func:`~apicache.config.resolve_config`.
    """

    caching: CachingConfig = Field(default_factory=CachingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    hosts: dict[str, HostPolicy] = Field(default_factory=dict)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def backup_domain(self) -> str:
        """Return the effective backup domain name."""
        return self.backup.domain or f"{self.store.domain}-backup"
