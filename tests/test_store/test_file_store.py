"""Tests for the FileStore module."""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

import pytest

from apicache.exceptions import CacheDecodeError, CacheStoreError
from apicache.store import FileStore


KEY = "http://api.example.com/1/users/show.json?id=1"


def _backdate(path: Path, seconds: float) -> None:
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1, "name": "test"})
        assert store.get(KEY) == {"id": 1, "name": "test"}

    def test_miss_returns_default(self, store: FileStore) -> None:
        assert store.get("http://api.example.com/missing") is None
        assert store.get("http://api.example.com/missing", "fallback") == "fallback"

    def test_entry_is_pretty_printed_json(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        path = store.path_for(KEY)
        assert path == store.root / "api.example.com" / "1" / "users" / "show.json_id_1.json"
        assert path.read_text(encoding="utf-8") == '{\n  "id": 1\n}\n'

    def test_set_replaces_existing_value(self, store: FileStore) -> None:
        store.set(KEY, {"v": 1})
        store.set(KEY, {"v": 2})
        assert store.get(KEY) == {"v": 2}

    def test_scalar_values(self, store: FileStore) -> None:
        store.set(KEY, "plain")
        assert store.get(KEY) == "plain"

    def test_exists_and_delete(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        assert store.exists(KEY)
        store.delete(KEY)
        assert not store.exists(KEY)
        store.delete(KEY)

    def test_unserialisable_value_raises(self, store: FileStore) -> None:
        with pytest.raises(CacheStoreError):
            store.set(KEY, {"when": object()})
        assert not store.exists(KEY)

    def test_no_temp_files_left_behind(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        leftovers = [p for p in store.path_for(KEY).parent.iterdir() if p.name.startswith(".")]
        assert leftovers == []


class TestErrors:
    def test_corrupt_entry_is_not_a_miss(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        store.path_for(KEY).write_text("{not json", encoding="utf-8")
        with pytest.raises(CacheDecodeError) as exc_info:
            store.get(KEY)
        assert exc_info.value.key == KEY

    def test_parent_and_child_coexist(self, store: FileStore) -> None:
        store.set("http://h/users", [1, 2])
        store.set("http://h/users/1", {"id": 1})
        assert store.get("http://h/users") == [1, 2]
        assert store.get("http://h/users/1") == {"id": 1}
        assert store.exists("http://h/users")
        assert store.exists("http://h/users/1")

    def test_child_first_then_parent(self, store: FileStore) -> None:
        store.set("http://h/users/1", {"id": 1})
        assert store.get("http://h/users") is None
        store.set("http://h/users", [1, 2])
        assert store.get("http://h/users") == [1, 2]
        assert store.get("http://h/users/1") == {"id": 1}


class TestBareLayout:
    """Without a suffix, ``/users`` is a file and also the parent of ``/users/1``."""

    @pytest.fixture
    def bare(self, tmp_path: Path):
        with FileStore("api", tmp_path, ttl=600, suffix="") as s:
            yield s

    def test_child_under_file_reads_as_miss(self, bare: FileStore) -> None:
        bare.set("http://h/users", [1, 2])
        assert bare.get("http://h/users/1") is None
        assert bare.get("http://h/users/1", "fallback") == "fallback"
        assert not bare.exists("http://h/users/1")
        assert not bare.expire("http://h/users/1", 10)
        bare.delete("http://h/users/1")
        assert bare.get("http://h/users") == [1, 2]

    def test_parent_over_directory_reads_as_miss(self, bare: FileStore) -> None:
        bare.set("http://h/users/1", {"id": 1})
        assert bare.get("http://h/users") is None
        assert not bare.exists("http://h/users")
        assert not bare.expire("http://h/users", 10)
        bare.delete("http://h/users")
        assert bare.get("http://h/users/1") == {"id": 1}

    def test_clashing_write_raises(self, bare: FileStore) -> None:
        bare.set("http://h/users", [1, 2])
        with pytest.raises(CacheStoreError):
            bare.set("http://h/users/1", {"id": 1})

    def test_bucket_under_file_is_empty(self, bare: FileStore) -> None:
        bare.set("http://h/users", [1, 2])
        assert bare.bucket("http://h/users/1").members() == []
        assert bare.hget("http://h/users/1", "abc") is None


# ------------------------------------------------------------------ #
# Expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_fresh_entry_is_served(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        _backdate(store.path_for(KEY), 599)
        assert store.get(KEY) == {"id": 1}

    def test_expired_entry_is_deleted_on_read(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        _backdate(store.path_for(KEY), 601)
        assert store.get(KEY) is None
        assert not store.path_for(KEY).exists()

    def test_exists_has_no_expiry_side_effect(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        _backdate(store.path_for(KEY), 601)
        assert store.exists(KEY)
        assert store.path_for(KEY).exists()

    def test_zero_ttl_never_expires(self, tmp_path: Path) -> None:
        with FileStore("api", tmp_path, ttl=0) as s:
            s.set(KEY, {"id": 1})
            _backdate(s.path_for(KEY), 10 * 365 * 86400)
            assert s.get(KEY) == {"id": 1}

    def test_expire_shortens_freshness_window(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        assert store.expire(KEY, 60) is True
        age = time.time() - store.path_for(KEY).stat().st_mtime
        assert 539 <= age <= 545
        assert store.get(KEY) == {"id": 1}

        _backdate(store.path_for(KEY), 601)
        assert store.get(KEY) is None

    def test_expire_missing_entry(self, store: FileStore) -> None:
        assert store.expire("http://h/none", 60) is False

    def test_expire_without_ttl_is_noop(self, tmp_path: Path) -> None:
        with FileStore("api", tmp_path) as s:
            s.set(KEY, {"id": 1})
            assert s.expire(KEY, 60) is False


# ------------------------------------------------------------------ #
# Domains
# ------------------------------------------------------------------ #


class TestDomains:
    def test_domains_are_isolated(self, tmp_path: Path) -> None:
        with FileStore("one", tmp_path) as a, FileStore("two", tmp_path) as b:
            a.set(KEY, {"from": "one"})
            assert b.get(KEY) is None
            b.set(KEY, {"from": "two"})
            assert a.get(KEY) == {"from": "one"}

    def test_clear_only_touches_own_domain(self, tmp_path: Path) -> None:
        with FileStore("one", tmp_path) as a, FileStore("two", tmp_path) as b:
            a.set(KEY, 1)
            b.set(KEY, 2)
            a.clear()
            assert a.get(KEY) is None
            assert b.get(KEY) == 2
            assert a.root.is_dir()


# ------------------------------------------------------------------ #
# Purge
# ------------------------------------------------------------------ #


class TestPurge:
    def test_purge_removes_only_expired_entries(self, store: FileStore) -> None:
        old_key = "http://h/old/deep/entry"
        store.set(old_key, 1)
        store.set(KEY, 2)
        _backdate(store.path_for(old_key), 601)

        assert store.purge() == 1
        assert not store.path_for(old_key).exists()
        assert store.get(KEY) == 2

    def test_purge_removes_empty_directories(self, store: FileStore) -> None:
        old_key = "http://h/old/deep/entry"
        store.set(old_key, 1)
        _backdate(store.path_for(old_key), 601)
        store.purge()
        assert not (store.root / "h").exists()
        assert store.root.is_dir()

    def test_purge_leaves_no_expired_files(self, store: FileStore) -> None:
        for i in range(5):
            store.set(f"http://h/items/{i}", i)
            if i % 2:
                _backdate(store.path_for(f"http://h/items/{i}"), 1000)
        store.purge()
        now = time.time()
        for path in store.root.rglob("*"):
            if path.is_file() and not path.name.startswith("."):
                assert now - path.stat().st_mtime < store.ttl

    def test_purge_skips_dotfiles(self, store: FileStore) -> None:
        hidden = store.root / "h" / ".keep"
        hidden.parent.mkdir(parents=True)
        hidden.write_text("")
        _backdate(hidden, 10_000)
        assert store.purge() == 0
        assert hidden.exists()

    def test_purge_with_zero_ttl(self, tmp_path: Path) -> None:
        with FileStore("api", tmp_path) as s:
            s.set(KEY, 1)
            _backdate(s.path_for(KEY), 10_000)
            assert s.purge() == 0
            assert s.exists(KEY)

    def test_purge_missing_root(self, tmp_path: Path) -> None:
        with FileStore("never-written", tmp_path, ttl=10) as s:
            assert s.purge() == 0


# ------------------------------------------------------------------ #
# Buckets
# ------------------------------------------------------------------ #


class TestBuckets:
    def test_hset_hget(self, store: FileStore) -> None:
        store.hset(KEY, "abc", {"status_code": 200})
        assert store.hget(KEY, "abc") == {"status_code": 200}
        assert store.hexists(KEY, "abc")
        assert not store.hexists(KEY, "other")

    def test_bucket_does_not_collide_with_entry(self, store: FileStore) -> None:
        store.set(KEY, "entry")
        store.hset(KEY, "abc", "member")
        assert store.get(KEY) == "entry"
        assert store.hget(KEY, "abc") == "member"

    def test_members_and_delete(self, store: FileStore) -> None:
        bucket = store.bucket(KEY)
        bucket.set("b", 2)
        bucket.set("a", 1)
        assert bucket.members() == ["a", "b"]
        assert len(bucket) == 2
        assert "a" in bucket
        store.hdel(KEY, "a")
        assert bucket.members() == ["b"]

    def test_members_strip_suffix(self, tmp_path: Path) -> None:
        with FileStore("api", tmp_path, suffix=".json") as s:
            s.hset(KEY, "abc", 1)
            assert s.bucket(KEY).members() == ["abc"]

    def test_empty_bucket(self, store: FileStore) -> None:
        assert store.bucket("http://h/none").members() == []

    def test_members_expire_with_store_ttl(self, store: FileStore) -> None:
        store.hset(KEY, "abc", 1)
        _backdate(store.bucket(KEY).path / "abc.json", 601)
        assert store.hget(KEY, "abc") is None

    def test_invalid_member_name(self, store: FileStore) -> None:
        with pytest.raises(ValueError):
            store.hset(KEY, "..", 1)


# ------------------------------------------------------------------ #
# Stats
# ------------------------------------------------------------------ #


class TestStats:
    def test_counts_entries_and_members(self, store: FileStore) -> None:
        store.set(KEY, {"id": 1})
        store.set("http://h/other", 2)
        store.hset(KEY, "abc", 3)
        stats = store.stats()
        assert stats["domain"] == "api"
        assert stats["entries"] == 2
        assert stats["bucket_members"] == 1
        assert stats["size_bytes"] > 0
        assert stats["ttl_seconds"] == 600

    def test_empty_store(self, store: FileStore) -> None:
        assert store.stats()["entries"] == 0


# ------------------------------------------------------------------ #
# Concurrency
# ------------------------------------------------------------------ #


class TestConcurrency:
    def test_readers_never_see_partial_entries(self, store: FileStore) -> None:
        payload = {"items": list(range(2000))}
        errors: list[BaseException] = []
        seen: list[object] = []

        def writer() -> None:
            try:
                for _ in range(20):
                    store.set(KEY, payload)
            except BaseException as exc:  # pragma: no cover - reported below
                errors.append(exc)

        def reader() -> None:
            try:
                for _ in range(20):
                    seen.append(store.get(KEY))
            except BaseException as exc:  # pragma: no cover - reported below
                errors.append(exc)

        threads = [threading.Thread(target=writer) for _ in range(3)]
        threads += [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert all(value is None or value == payload for value in seen)
        assert json.loads(store.path_for(KEY).read_text()) == payload
