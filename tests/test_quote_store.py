"""Unit tests for key/value backends and the QuoteStore persistence adapter.

File backend uses tmp_path; Redis backend uses an AsyncMock client -- no
real Redis server.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.quotesync.core.exceptions import StorageError
from src.quotesync.quotes.schemas import Provenance, Quote
from src.quotesync.storage.kv import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from src.quotesync.storage.persistence import (
    LAST_VIEWED_KEY,
    QUOTES_KEY,
    SELECTED_CATEGORY_KEY,
    QuoteStore,
    normalize_records,
)


NOW = 1_700_000_000_000


def make_quote(**overrides) -> Quote:
    """Create a test Quote with sensible defaults."""
    defaults = {
        "ref": "A",
        "provenance": Provenance.LOCAL,
        "text": "The best way to get started is to quit talking and begin doing",
        "category": "Motivation",
        "updated_at": NOW,
        "pending": False,
    }
    defaults.update(overrides)
    return Quote(**defaults)


# ── KeyValueStore ABC ──────────────────────────────────────────────────────


class TestKeyValueStoreABC:
    def test_has_abstract_methods(self):
        assert KeyValueStore.__abstractmethods__ == {"get", "set", "delete"}

    def test_cannot_be_instantiated(self):
        with pytest.raises(TypeError, match="abstract"):
            KeyValueStore()  # type: ignore[abstract]


# ── FileKeyValueStore ──────────────────────────────────────────────────────


class TestFileKeyValueStore:
    async def test_get_missing_returns_none(self, tmp_path):
        kv = FileKeyValueStore(tmp_path / "data")
        assert await kv.get("quotes") is None

    async def test_set_get_delete(self, tmp_path):
        kv = FileKeyValueStore(tmp_path / "data")
        await kv.set("quotes", "[1, 2]")
        assert await kv.get("quotes") == "[1, 2]"
        assert (tmp_path / "data" / "quotes.json").exists()

        await kv.delete("quotes")
        assert await kv.get("quotes") is None

    async def test_value_survives_new_instance(self, tmp_path):
        await FileKeyValueStore(tmp_path).set("selectedCategory", "Motivation")
        assert await FileKeyValueStore(tmp_path).get("selectedCategory") == "Motivation"

    async def test_overwrite_leaves_no_temp_files(self, tmp_path):
        kv = FileKeyValueStore(tmp_path)
        await kv.set("quotes", "old")
        await kv.set("quotes", "new")
        assert await kv.get("quotes") == "new"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["quotes.json"]

    async def test_invalid_key_rejected(self, tmp_path):
        kv = FileKeyValueStore(tmp_path)
        with pytest.raises(StorageError):
            await kv.set("../escape", "x")

    async def test_write_failure_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        kv = FileKeyValueStore(blocker)
        with pytest.raises(StorageError):
            await kv.set("quotes", "[]")


# ── RedisKeyValueStore ─────────────────────────────────────────────────────


class TestRedisKeyValueStore:
    @pytest.fixture
    def mock_redis(self):
        return AsyncMock()

    async def test_keys_are_prefixed(self, mock_redis):
        kv = RedisKeyValueStore(mock_redis, prefix="qs", scope="durable")
        mock_redis.get.return_value = "[]"

        assert await kv.get("quotes") == "[]"
        mock_redis.get.assert_called_once_with("qs:durable:quotes")

    async def test_set_applies_ttl(self, mock_redis):
        kv = RedisKeyValueStore(mock_redis, prefix="qs", scope="session", ttl_seconds=60)
        await kv.set("lastViewedQuote", "{}")
        mock_redis.set.assert_called_once_with("qs:session:lastViewedQuote", "{}", ex=60)

    async def test_durable_set_has_no_ttl(self, mock_redis):
        kv = RedisKeyValueStore(mock_redis)
        await kv.set("quotes", "[]")
        mock_redis.set.assert_called_once_with("quotesync:durable:quotes", "[]", ex=None)

    async def test_delete(self, mock_redis):
        kv = RedisKeyValueStore(mock_redis, prefix="qs")
        await kv.delete("quotes")
        mock_redis.delete.assert_called_once_with("qs:durable:quotes")

    async def test_redis_error_wrapped(self, mock_redis):
        mock_redis.get.side_effect = RedisConnectionError("down")
        kv = RedisKeyValueStore(mock_redis)
        with pytest.raises(StorageError, match="down"):
            await kv.get("quotes")


# ── QuoteStore ─────────────────────────────────────────────────────────────


class TestQuoteStore:
    async def test_save_and_load_round_trip(self, store):
        quotes = [
            make_quote(ref="A"),
            make_quote(ref="42", provenance=Provenance.REMOTE, category="Life", pending=True),
        ]
        await store.save(quotes)
        assert await store.load() == quotes

    async def test_save_overwrites_snapshot(self, store, durable):
        await store.save([make_quote(ref="A"), make_quote(ref="B")])
        await store.save([make_quote(ref="C")])
        saved = json.loads(await durable.get(QUOTES_KEY))
        assert [r["id"] for r in saved] == ["loc-C"]

    async def test_load_absent_returns_empty(self, store):
        assert await store.load() == []

    @pytest.mark.parametrize("raw", ["not json", "{\"text\": \"x\"}", "42", "null"])
    async def test_load_malformed_returns_empty(self, store, durable, raw):
        await durable.set(QUOTES_KEY, raw)
        assert await store.load() == []

    async def test_load_upgrades_old_snapshot(self, store, durable):
        await durable.set(
            QUOTES_KEY,
            json.dumps(
                [
                    {"text": "Old one", "category": "Motivation"},
                    {"text": "Old two", "category": "Inspiration"},
                ]
            ),
        )
        quotes = await store.load()

        assert len(quotes) == 2
        assert len({q.id for q in quotes}) == 2
        assert all(q.provenance is Provenance.LOCAL for q in quotes)
        assert all(q.pending is False for q in quotes)
        assert all(q.updated_at > 0 for q in quotes)

    async def test_load_drops_invalid_and_duplicate_records(self, store, durable):
        await durable.set(
            QUOTES_KEY,
            json.dumps(
                [
                    {"id": "srv-1", "text": "a", "category": "c"},
                    {"id": "srv-1", "text": "dup", "category": "c"},
                    {"id": "srv-2", "text": "", "category": "c"},
                    "garbage",
                ]
            ),
        )
        quotes = await store.load()
        assert [(q.id, q.text) for q in quotes] == [("srv-1", "a")]

    async def test_load_read_failure_returns_empty(self):
        durable = AsyncMock(spec=KeyValueStore)
        durable.get.side_effect = StorageError("disk gone")
        store = QuoteStore(durable, MemoryKeyValueStore())
        assert await store.load() == []

    async def test_save_failure_propagates(self):
        durable = AsyncMock(spec=KeyValueStore)
        durable.set.side_effect = StorageError("disk full")
        store = QuoteStore(durable, MemoryKeyValueStore())
        with pytest.raises(StorageError):
            await store.save([make_quote()])

    async def test_last_viewed_is_session_scoped(self, store, durable, session):
        quote = make_quote(ref="42", provenance=Provenance.REMOTE)
        await store.save_last_viewed(quote)

        assert await store.load_last_viewed() == quote
        assert await session.get(LAST_VIEWED_KEY) is not None
        assert await durable.get(LAST_VIEWED_KEY) is None

    async def test_last_viewed_absent_or_malformed(self, store, session):
        assert await store.load_last_viewed() is None
        await session.set(LAST_VIEWED_KEY, "{broken")
        assert await store.load_last_viewed() is None
        await session.set(LAST_VIEWED_KEY, json.dumps({"text": "", "category": "c"}))
        assert await store.load_last_viewed() is None

    async def test_selected_category_is_durable(self, store, durable):
        assert await store.load_selected_category() is None
        await store.save_selected_category("Motivation")
        assert await store.load_selected_category() == "Motivation"
        assert await durable.get(SELECTED_CATEGORY_KEY) == "Motivation"


class TestNormalizeRecords:
    def test_counts_drops(self):
        quotes, dropped = normalize_records(
            [{"text": "a", "category": "c"}, {"text": "b"}, {"text": "c", "category": "d"}],
            now=NOW,
        )
        assert dropped == 1
        assert [q.id for q in quotes] == [f"loc-{NOW}", f"loc-{NOW}-1"]
