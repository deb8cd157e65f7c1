"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for apicache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apicache/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~apicache.models.GlobalConfig`
  JSON file storing the caching switch, store layout, and registered hosts.
* **Precedence resolution** -- :func:`resolve_config` layers ``APICACHE_*``
  environment variables over the global config file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`). The file store reuses it for cache entries so that
a reader never observes a half-written entry.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from apicache.exceptions import ConfigError
from apicache.models import GlobalConfig

_APP_NAME = "apicache"
_CONFIG_FILENAME = "config.json"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/apicache/`` (default ``~/.config/apicache/``).
    On macOS/Windows: ``~/.apicache/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the default root of the response cache tree, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/apicache/`` (default ``~/.cache/apicache/``).
    On macOS/Windows: ``~/.apicache/cache/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/apicache/`` (default ``~/.local/share/apicache/``).
    On macOS/Windows: ``~/.apicache/logs/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Temp files start with a dot, which the store's purge sweep skips. On
    any failure the temp file is cleaned up and the error re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~apicache.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"Environment variable {name} must be a boolean, got: {value!r}")


def _env_number(name: str, value: str, kind: type) -> float | int:
    try:
        return kind(value)
    except ValueError:
        raise ConfigError(
            f"Environment variable {name} must be a {kind.__name__}, got: {value!r}"
        ) from None


def resolve_config(cli_cache_dir: Optional[str] = None) -> GlobalConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``cli_cache_dir``)
        2. Environment variables (``APICACHE_ENABLED``, ``APICACHE_CACHE_DIR``,
           ``APICACHE_TTL``, ``APICACHE_TIMEOUT``)
        3. User config (``~/.config/apicache/config.json``)
        4. Defaults

    Returns:
        A fresh :class:`~apicache.models.GlobalConfig`; the file on disk is
        never modified.

    Raises:
        ConfigError: If the config file or an environment value is invalid.
    """
    config = load_global_config()

    env_enabled = os.environ.get("APICACHE_ENABLED")
    if env_enabled:
        config.caching.enabled = _env_bool("APICACHE_ENABLED", env_enabled)

    env_ttl = os.environ.get("APICACHE_TTL")
    if env_ttl:
        config.store.ttl_seconds = int(_env_number("APICACHE_TTL", env_ttl, int))

    env_timeout = os.environ.get("APICACHE_TIMEOUT")
    if env_timeout:
        config.caching.timeout = float(_env_number("APICACHE_TIMEOUT", env_timeout, float))

    env_cache_dir = os.environ.get("APICACHE_CACHE_DIR")
    if cli_cache_dir is not None:
        config.store.root_dir = cli_cache_dir
    elif env_cache_dir:
        config.store.root_dir = env_cache_dir

    return config


def resolve_root_dir(config: GlobalConfig) -> Path:
    """Return the cache root for *config*, falling back to :func:`get_cache_dir`."""
    if config.store.root_dir:
        return Path(config.store.root_dir).expanduser()
    return get_cache_dir()
