"""Owned application state: the quote set and the selected category.

A single ``QuoteState`` is shared by reference between the QuoteManager,
the SyncEngine and the QuoteStore. Records are keyed by their prefixed id,
which keeps ids unique at all times.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from src.quotesync.quotes.model import ALL_CATEGORIES, list_categories
from src.quotesync.quotes.schemas import Quote


class QuoteState:
    """Mutable container for the current record set."""

    def __init__(
        self,
        quotes: Iterable[Quote] = (),
        selected_category: str = ALL_CATEGORIES,
    ) -> None:
        self._quotes: dict[str, Quote] = {}
        self.selected_category = selected_category
        for quote in quotes:
            self.put(quote)

    def __len__(self) -> int:
        return len(self._quotes)

    def __iter__(self) -> Iterator[Quote]:
        return iter(list(self._quotes.values()))

    def __contains__(self, quote_id: object) -> bool:
        return quote_id in self._quotes

    def ids(self) -> set[str]:
        return set(self._quotes)

    def get(self, quote_id: str) -> Quote | None:
        return self._quotes.get(quote_id)

    def quotes(self) -> list[Quote]:
        return list(self._quotes.values())

    def pending(self) -> list[Quote]:
        return [q for q in self._quotes.values() if q.pending]

    def add(self, quote: Quote) -> None:
        """Insert a new quote.

        Raises:
            KeyError: If a quote with the same id is already present.
        """
        if quote.id in self._quotes:
            raise KeyError(quote.id)
        self._quotes[quote.id] = quote

    def put(self, quote: Quote) -> None:
        """Insert or overwrite by id."""
        self._quotes[quote.id] = quote

    def reassign(self, old_id: str, quote: Quote) -> None:
        """Replace the quote stored under ``old_id`` with ``quote`` under its own id."""
        self._quotes.pop(old_id, None)
        self._quotes[quote.id] = quote

    def replace_all(self, quotes: Iterable[Quote]) -> None:
        self._quotes = {}
        for quote in quotes:
            self.put(quote)

    @property
    def categories(self) -> list[str]:
        return list_categories(self._quotes.values())
