"""Unit tests for kv/store.py -- the SQLite-backed key-value engine.

Covers:
- get/set/delete round-trip and overwrite semantics
- scan() prefix filtering, key ordering, and LIKE-wildcard escaping
- update() commits on clean exit and rolls back when the block raises
- view() refuses writes
- named shared-memory URLs pool separate connections over one database
- ping() and StoreError once the backing table is gone
"""

import uuid

import pytest
from sqlalchemy.pool import StaticPool

from kv.store import KVStore, StoreError


class TestKVBasics:
    def test_get_missing_key_returns_none(self, kv: KVStore) -> None:
        assert kv.get("nope") is None

    def test_set_then_get(self, kv: KVStore) -> None:
        kv.set("user:1", "one")
        assert kv.get("user:1") == "one"

    def test_set_overwrites(self, kv: KVStore) -> None:
        kv.set("user:1", "one")
        kv.set("user:1", "uno")
        assert kv.get("user:1") == "uno"

    def test_delete_reports_existence(self, kv: KVStore) -> None:
        kv.set("k", "v")
        assert kv.delete("k") is True
        assert kv.delete("k") is False
        assert kv.get("k") is None


class TestKVScan:
    def test_scan_filters_by_prefix_in_key_order(self, kv: KVStore) -> None:
        kv.set("user:b", "2")
        kv.set("refresh_token:a", "x")
        kv.set("user:a", "1")
        assert kv.scan("user:") == [("user:a", "1"), ("user:b", "2")]

    def test_scan_without_prefix_returns_everything(self, kv: KVStore) -> None:
        kv.set("a", "1")
        kv.set("b", "2")
        assert [k for k, _ in kv.scan()] == ["a", "b"]

    def test_scan_treats_wildcards_literally(self, kv: KVStore) -> None:
        """'%' and '_' in a prefix must not act as LIKE wildcards."""
        kv.set("a_b:1", "hit")
        kv.set("axb:1", "miss")
        assert kv.scan("a_b:") == [("a_b:1", "hit")]


class TestKVTransactions:
    def test_update_commits_on_success(self, kv: KVStore) -> None:
        with kv.update() as tx:
            tx.set("k1", "v1")
            tx.set("k2", "v2")
        assert kv.get("k1") == "v1"
        assert kv.get("k2") == "v2"

    def test_update_rolls_back_on_error(self, kv: KVStore) -> None:
        with pytest.raises(RuntimeError):
            with kv.update() as tx:
                tx.set("k", "v")
                raise RuntimeError("boom")
        assert kv.get("k") is None

    def test_reads_inside_update_see_own_writes(self, kv: KVStore) -> None:
        with kv.update() as tx:
            tx.set("k", "v")
            assert tx.get("k") == "v"

    def test_view_rejects_writes(self, kv: KVStore) -> None:
        with pytest.raises(StoreError):
            with kv.view() as tx:
                tx.set("k", "v")


class TestKVSharedMemory:
    def test_pooled_connections_share_one_database(self) -> None:
        kv = KVStore(f"sqlite:///file:kv_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
        try:
            assert not isinstance(kv.engine.pool, StaticPool)
            kv.set("k", "v")
            with kv.view() as outer:
                # kv.get checks out a second connection while outer holds the first.
                assert kv.get("k") == "v"
                assert outer.get("k") == "v"
        finally:
            kv.close()


class TestKVPing:
    def test_ping_live_store(self, kv: KVStore) -> None:
        assert kv.ping() is True

    def test_ping_after_table_dropped(self, kv: KVStore) -> None:
        with kv.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE kv")
        assert kv.ping() is False

    def test_operations_raise_store_error_when_table_missing(self, kv: KVStore) -> None:
        with kv.engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE kv")
        with pytest.raises(StoreError):
            kv.get("k")
