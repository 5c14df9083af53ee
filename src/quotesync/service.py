"""QuoteManager -- application facade used by presentation layers.

Owns the QuoteState and wires it to the QuoteStore and SyncEngine. A
presentation layer (the CLI, or any UI) supplies user text/category pairs
and import payloads, and renders whatever records this facade returns.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from src.quotesync.config import Settings, StorageBackend, get_settings
from src.quotesync.core.exceptions import ImportFormatError, QuoteValidationError, StorageError
from src.quotesync.quotes.model import (
    ALL_CATEGORIES,
    create_local,
    filter_by_category,
    now_ms,
    pick_random,
    revise,
    seed_quotes,
    validate_candidate,
)
from src.quotesync.quotes.schemas import ImportResult, Quote, SyncResult
from src.quotesync.quotes.state import QuoteState
from src.quotesync.storage.kv import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    close_redis,
    get_redis_pool,
)
from src.quotesync.storage.persistence import QuoteStore
from src.quotesync.sync.engine import SyncEngine
from src.quotesync.sync.gateway import RemoteGateway

logger = structlog.get_logger(__name__)


def build_stores(settings: Settings) -> tuple[KeyValueStore, KeyValueStore]:
    """Create (durable, session) key/value stores for the configured backend."""
    if settings.STORAGE_BACKEND == StorageBackend.redis:
        client = get_redis_pool(settings.REDIS_URL)
        durable = RedisKeyValueStore(client, prefix=settings.REDIS_KEY_PREFIX, scope="durable")
        session = RedisKeyValueStore(
            client,
            prefix=settings.REDIS_KEY_PREFIX,
            scope="session",
            ttl_seconds=settings.SESSION_TTL_SECONDS,
        )
        return durable, session
    return FileKeyValueStore(Path(settings.DATA_DIR)), MemoryKeyValueStore()


class QuoteManager:
    """Facade over the quote set, its persistence and sync.

    Args:
        state: Owned record set shared with the engine.
        store: Persistence adapter.
        engine: Sync engine bound to the same state and store.
    """

    def __init__(self, state: QuoteState, store: QuoteStore, engine: SyncEngine) -> None:
        self._state = state
        self._store = store
        self._engine = engine
        self.storage_degraded = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> QuoteManager:
        settings = settings or get_settings()
        durable, session = build_stores(settings)
        state = QuoteState()
        store = QuoteStore(durable, session)
        engine = SyncEngine(state, RemoteGateway.from_settings(settings), store)
        return cls(state, store, engine)

    @property
    def state(self) -> QuoteState:
        return self._state

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    async def _persist(self) -> bool:
        try:
            await self._store.save(self._state)
        except StorageError:
            logger.error("quotes.save_failed", exc_info=True)
            self.storage_degraded = True
            return False
        self.storage_degraded = False
        return True

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load the snapshot (or seed it) and restore the selected category."""
        quotes = await self._store.load()
        if quotes:
            self._state.replace_all(quotes)
        else:
            self._state.replace_all(seed_quotes())
            logger.info("quotes.seeded", count=len(self._state))
            await self._persist()

        selected = await self._store.load_selected_category()
        if selected and selected in self._state.categories:
            self._state.selected_category = selected
        else:
            self._state.selected_category = ALL_CATEGORIES

    async def close(self) -> None:
        await close_redis()

    # ── Records ─────────────────────────────────────────────────────────

    async def add_quote(self, text: str, category: str) -> Quote:
        """Create a pending local quote and save the set.

        Raises:
            QuoteValidationError: If text or category is blank.
        """
        quote = create_local(text, category, taken=self._state.ids())
        self._state.add(quote)
        await self._persist()
        logger.info("quotes.added", quote_id=quote.id, category=quote.category)
        return quote

    async def edit_quote(self, quote_id: str, text: str, category: str) -> Quote:
        """Edit a quote in place; the edit is pending until pushed.

        Raises:
            KeyError: If no quote has ``quote_id``.
            QuoteValidationError: If text or category is blank.
        """
        current = self._state.get(quote_id)
        if current is None:
            raise KeyError(quote_id)
        updated = revise(current, text, category)
        self._state.put(updated)
        await self._persist()
        logger.info("quotes.edited", quote_id=quote_id)
        return updated

    def quotes(self, category: str | None = None) -> list[Quote]:
        return filter_by_category(self._state, category)

    def categories(self) -> list[str]:
        return self._state.categories

    async def select_category(self, name: str) -> None:
        """Persist the category filter.

        Raises:
            ValueError: If ``name`` is not a known category.
        """
        if name not in self._state.categories:
            raise ValueError(f"Unknown category: {name}")
        self._state.selected_category = name
        try:
            await self._store.save_selected_category(name)
        except StorageError:
            logger.warning("quotes.selected_category_save_failed", exc_info=True)

    async def show_random(self, category: str | None = None) -> Quote | None:
        """Pick a random quote from the category (default: the selected one)."""
        quote = pick_random(self._state, category or self._state.selected_category)
        if quote is not None:
            try:
                await self._store.save_last_viewed(quote)
            except StorageError:
                logger.warning("quotes.last_viewed_save_failed", exc_info=True)
        return quote

    async def last_viewed(self) -> Quote | None:
        return await self._store.load_last_viewed()

    # ── Import / Export ─────────────────────────────────────────────────

    async def import_quotes(self, payload: str | bytes | Any) -> ImportResult:
        """Import quotes from JSON text or an already decoded list.

        Invalid elements are dropped and counted; elements whose id is
        already present are skipped.

        Raises:
            ImportFormatError: If the payload is not JSON or not a list.
        """
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                data = json.loads(payload)
            except ValueError as exc:
                raise ImportFormatError("Import file is not valid JSON") from exc
        else:
            data = payload

        if not isinstance(data, list):
            raise ImportFormatError("Import file must contain a JSON array of quotes")

        result = ImportResult()
        taken = self._state.ids()
        stamp = now_ms()
        for raw in data:
            try:
                quote = validate_candidate(raw, now=stamp, taken=taken)
            except QuoteValidationError:
                result.rejected += 1
                continue
            if quote.id in taken:
                result.skipped += 1
                continue
            self._state.add(quote)
            taken.add(quote.id)
            result.imported += 1

        if result.imported:
            await self._persist()

        logger.info(
            "quotes.imported",
            imported=result.imported,
            rejected=result.rejected,
            skipped=result.skipped,
        )
        return result

    def export_quotes(self) -> str:
        """Serialize the full set as pretty JSON."""
        return json.dumps([q.to_record() for q in self._state], indent=2, ensure_ascii=False)

    # ── Sync ────────────────────────────────────────────────────────────

    async def sync_now(self) -> SyncResult:
        return await self._engine.run_cycle()
