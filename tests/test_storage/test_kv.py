"""Tests for the MemoryStore and SqliteStore key-value backends."""

import pytest

from tradesignal.storage import MemoryStore, SqliteStore


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_set_get_remove(self) -> None:
        store = MemoryStore()
        await store.set("a", "1")
        assert await store.get("a") == "1"
        await store.remove("a")
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_remove_missing_is_noop(self) -> None:
        await MemoryStore().remove("missing")

    @pytest.mark.asyncio
    async def test_keys_by_prefix(self) -> None:
        store = MemoryStore()
        for key in ("hist_B", "hist_A", "calls_2024-01-01"):
            await store.set(key, "x")
        assert await store.keys("hist_") == ["hist_A", "hist_B"]
        assert len(await store.keys()) == 3


class TestSqliteStore:
    @pytest.mark.asyncio
    async def test_round_trip_and_overwrite(self, tmp_path) -> None:
        async with SqliteStore(str(tmp_path / "kv.db")) as store:
            await store.set("k", "first")
            await store.set("k", "second")
            assert await store.get("k") == "second"
            await store.remove("k")
            assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path) -> None:
        path = str(tmp_path / "nested" / "kv.db")
        async with SqliteStore(path) as store:
            await store.set("stock_price_history_AAPL", "[]")
        async with SqliteStore(path) as store:
            assert await store.get("stock_price_history_AAPL") == "[]"

    @pytest.mark.asyncio
    async def test_prefix_with_sql_wildcards(self, tmp_path) -> None:
        async with SqliteStore(str(tmp_path / "kv.db")) as store:
            await store.set("a_1", "x")
            await store.set("ab1", "x")
            await store.set("a%2", "x")
            assert await store.keys("a_") == ["a_1"]
            assert await store.keys("a%") == ["a%2"]

    @pytest.mark.asyncio
    async def test_schema_version_recorded_once(self, tmp_path) -> None:
        path = str(tmp_path / "kv.db")
        async with SqliteStore(path):
            pass
        async with SqliteStore(path) as store:
            cursor = await store.db.execute("SELECT COUNT(*) FROM schema_version")
            row = await cursor.fetchone()
            assert row[0] == 1

    def test_db_before_connect_raises(self, tmp_path) -> None:
        store = SqliteStore(str(tmp_path / "kv.db"))
        with pytest.raises(RuntimeError):
            _ = store.db
