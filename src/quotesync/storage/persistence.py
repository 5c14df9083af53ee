"""QuoteStore -- snapshot and preference persistence over key/value backends.

The full record set is stored as one JSON array under a fixed key in the
durable store; saves always overwrite the whole snapshot. The selected
category is a plain durable string. The last viewed quote is a JSON object
in the session store and need not survive a restart.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

import structlog

from src.quotesync.core.exceptions import QuoteValidationError, StorageError
from src.quotesync.quotes.model import validate_candidate
from src.quotesync.quotes.schemas import Quote
from src.quotesync.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

QUOTES_KEY = "quotes"
SELECTED_CATEGORY_KEY = "selectedCategory"
LAST_VIEWED_KEY = "lastViewedQuote"


def normalize_records(items: Iterable[object], *, now: int | None = None) -> tuple[list[Quote], int]:
    """Validate a sequence of raw records, dropping invalid ones and duplicate ids.

    Returns:
        Tuple of (accepted quotes, number dropped).
    """
    accepted: list[Quote] = []
    taken: set[str] = set()
    dropped = 0
    for raw in items:
        try:
            quote = validate_candidate(raw, now=now, taken=taken)
        except QuoteValidationError:
            dropped += 1
            continue
        if quote.id in taken:
            dropped += 1
            continue
        taken.add(quote.id)
        accepted.append(quote)
    return accepted, dropped


class QuoteStore:
    """Persistence adapter for the quote snapshot and UI preference slots.

    Args:
        durable: Store whose contents survive restarts (snapshot, selected category).
        session: Store scoped to the current session (last viewed quote).
    """

    def __init__(self, durable: KeyValueStore, session: KeyValueStore) -> None:
        self._durable = durable
        self._session = session

    # ── Snapshot ────────────────────────────────────────────────────────

    async def save(self, quotes: Iterable[Quote]) -> None:
        """Overwrite the durable snapshot with the full record set.

        Raises:
            StorageError: If the durable store rejects the write.
        """
        records = [q.to_record() for q in quotes]
        await self._durable.set(QUOTES_KEY, json.dumps(records))
        logger.debug("store.snapshot_saved", count=len(records))

    async def load(self) -> list[Quote]:
        """Read the durable snapshot.

        Returns an empty list when the snapshot is absent, unreadable,
        not valid JSON, or not a list; the caller falls back to seed quotes.
        Older snapshots missing id/updatedAt/pending are upgraded in place.
        """
        try:
            raw = await self._durable.get(QUOTES_KEY)
        except StorageError:
            logger.warning("store.snapshot_read_failed", exc_info=True)
            return []

        if raw is None:
            return []

        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("store.snapshot_malformed", reason="invalid_json")
            return []

        if not isinstance(data, list):
            logger.warning("store.snapshot_malformed", reason="not_a_list")
            return []

        quotes, dropped = normalize_records(data)
        if dropped:
            logger.warning("store.snapshot_records_dropped", dropped=dropped)
        logger.info("store.snapshot_loaded", count=len(quotes))
        return quotes

    # ── Last viewed (session) ───────────────────────────────────────────

    async def save_last_viewed(self, quote: Quote) -> None:
        await self._session.set(LAST_VIEWED_KEY, json.dumps(quote.to_record()))

    async def load_last_viewed(self) -> Quote | None:
        try:
            raw = await self._session.get(LAST_VIEWED_KEY)
        except StorageError:
            logger.warning("store.last_viewed_read_failed", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return validate_candidate(json.loads(raw))
        except (TypeError, ValueError):
            # QuoteValidationError is a ValueError too
            logger.warning("store.last_viewed_malformed")
            return None

    # ── Selected category (durable) ─────────────────────────────────────

    async def save_selected_category(self, name: str) -> None:
        await self._durable.set(SELECTED_CATEGORY_KEY, name)

    async def load_selected_category(self) -> str | None:
        try:
            value = await self._durable.get(SELECTED_CATEGORY_KEY)
        except StorageError:
            logger.warning("store.selected_category_read_failed", exc_info=True)
            return None
        return value or None
