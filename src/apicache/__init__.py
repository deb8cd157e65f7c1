"""apicache -- file-backed HTTP response cache with stale-backup fallback.

GET requests to registered API hosts are served from a per-URI JSON file
when a fresh copy exists, fetched under a wall-clock timeout otherwise, and
recovered from a backup copy when the upstream call fails. Caching is
plugged into :class:`httpx.Client` as transport middleware.

Typical workflow::

    apicache hosts add api.example.com --expire-in 600 --key-name example
    apicache config set caching.enabled true
    apicache fetch https://api.example.com/users

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and environment overrides.
    normalizer: Canonical cache keys for request URIs.
    registry: Hosts eligible for caching.
    store: The file-backed TTL store and its backup buckets.
    engine: The per-request decision engine and httpx transport.
    client: Context-managed cached HTTP client.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
