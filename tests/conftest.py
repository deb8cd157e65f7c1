"""Shared test fixtures for apicache.

Provides isolated config environments and ready-made stores, registries
and engines. These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from apicache.engine import CacheEngine
from apicache.models import CachingConfig, HostPolicy
from apicache.output import OutputFormat, OutputManager, reset_output, set_output
from apicache.registry import HostRegistry
from apicache.store import FileStore


API_HOST = "api.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner closes those streams when a test finishes.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_apicache_logger() -> None:
    """Undo the Rich handler the CLI installs so caplog keeps working."""
    yield
    logger = logging.getLogger("apicache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path and clears all APICACHE_* variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "APICACHE_ENABLED",
        "APICACHE_CACHE_DIR",
        "APICACHE_TTL",
        "APICACHE_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Store and engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    """A primary store with a 600 second TTL."""
    s = FileStore("api", tmp_path / "cache", ttl=600)
    yield s
    s.close()


@pytest.fixture
def backup_store(tmp_path: Path) -> FileStore:
    """A backup store that never expires."""
    s = FileStore("api-backup", tmp_path / "cache")
    yield s
    s.close()


@pytest.fixture
def registry() -> HostRegistry:
    return HostRegistry([HostPolicy(host=API_HOST, expire_in=600, key_name="api-cache:example")])


@pytest.fixture
def make_engine(
    store: FileStore, backup_store: FileStore, registry: HostRegistry
) -> Callable[..., CacheEngine]:
    """Factory for engines sharing the test stores.

    Keyword arguments override :class:`CachingConfig` fields; ``callback``
    sets the exception callback.
    """
    engines: list[CacheEngine] = []

    def _make(callback=None, **overrides) -> CacheEngine:
        config = CachingConfig(**{"enabled": True, "timeout": 2.0, **overrides})
        engine = CacheEngine(
            config, store, registry, backup_store=backup_store, exception_callback=callback
        )
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()

