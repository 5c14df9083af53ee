"""Quote record rules: validation, local creation, identity and listing helpers.

Every path that brings a record into the set (user input, import, snapshot
load, remote mapping) goes through ``validate_candidate`` or
``create_local``, so text and category are always non-empty trimmed strings.
"""

from __future__ import annotations

import random
import time
from collections.abc import Container, Iterable, Mapping
from typing import Any

from src.quotesync.core.exceptions import QuoteValidationError
from src.quotesync.quotes.schemas import LOCAL_PREFIX, REMOTE_PREFIX, Provenance, Quote

ALL_CATEGORIES = "all"

SEED_QUOTES: tuple[dict[str, str], ...] = (
    {
        "text": "The best way to get started is to quit talking and begin doing",
        "category": "Motivation",
    },
    {
        "text": "Don't let yesterday take up too much of today",
        "category": "Inspiration",
    },
)


def now_ms() -> int:
    """Current local clock in epoch milliseconds."""
    return int(time.time() * 1000)


# ── Identity ───────────────────────────────────────────────────────────────


def parse_id(value: Any) -> tuple[Provenance, str] | None:
    """Split a prefixed id into (provenance, ref). Returns None if unrecognised."""
    if not isinstance(value, str):
        return None
    if value.startswith(LOCAL_PREFIX) and len(value) > len(LOCAL_PREFIX):
        return Provenance.LOCAL, value[len(LOCAL_PREFIX):]
    if value.startswith(REMOTE_PREFIX) and len(value) > len(REMOTE_PREFIX):
        return Provenance.REMOTE, value[len(REMOTE_PREFIX):]
    return None


def new_local_ref(now: int, taken: Container[str] = ()) -> str:
    """Build a local ref from a creation timestamp, disambiguated against taken ids."""
    base = str(now)
    if f"{LOCAL_PREFIX}{base}" not in taken:
        return base
    n = 1
    while f"{LOCAL_PREFIX}{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


# ── Validation / Creation ──────────────────────────────────────────────────


def _clean(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def validate_candidate(
    raw: Any,
    *,
    now: int | None = None,
    taken: Container[str] = (),
) -> Quote:
    """Validate and normalize an untrusted candidate record.

    Accepts only mappings whose ``text`` and ``category`` are non-empty after
    trimming. Missing ids get a fresh local id, a missing ``updatedAt``
    defaults to ``now``, and ``pending`` is coerced to bool.

    Args:
        raw: Untrusted candidate (import element, snapshot element, mapped remote item).
        now: Clock override in epoch millis.
        taken: Ids already in use, consulted only when a fresh id is assigned.

    Raises:
        QuoteValidationError: If the candidate is not an object or text/category is blank.
    """
    if not isinstance(raw, Mapping):
        raise QuoteValidationError("candidate is not an object", raw)

    text = _clean(raw.get("text"))
    category = _clean(raw.get("category"))
    if not text:
        raise QuoteValidationError("text is missing or empty", raw)
    if not category:
        raise QuoteValidationError("category is missing or empty", raw)

    stamp = now if now is not None else now_ms()

    parsed = parse_id(raw.get("id"))
    if parsed is None:
        provenance, ref = Provenance.LOCAL, new_local_ref(stamp, taken)
    else:
        provenance, ref = parsed

    updated_at = raw.get("updatedAt")
    if isinstance(updated_at, bool) or not isinstance(updated_at, (int, float)):
        updated_at = stamp

    return Quote(
        ref=ref,
        provenance=provenance,
        text=text,
        category=category,
        updated_at=int(updated_at),
        pending=bool(raw.get("pending", False)),
    )


def create_local(
    text: str,
    category: str,
    *,
    now: int | None = None,
    taken: Container[str] = (),
) -> Quote:
    """Create a new locally originated quote, pending its first push.

    Raises:
        QuoteValidationError: If text or category is empty after trimming.
    """
    text = _clean(text)
    category = _clean(category)
    if not text or not category:
        raise QuoteValidationError("Please enter both a quote and a category")

    stamp = now if now is not None else now_ms()
    return Quote(
        ref=new_local_ref(stamp, taken),
        provenance=Provenance.LOCAL,
        text=text,
        category=category,
        updated_at=stamp,
        pending=True,
    )


def revise(quote: Quote, text: str, category: str, *, now: int | None = None) -> Quote:
    """Return a locally edited copy of ``quote``; re-opens pending.

    Identity and provenance are kept, so a previously pushed quote edited
    again is a pending ``srv-`` record until its next push.
    """
    text = _clean(text)
    category = _clean(category)
    if not text or not category:
        raise QuoteValidationError("Please enter both a quote and a category")

    return quote.model_copy(
        update={
            "text": text,
            "category": category,
            "updated_at": now if now is not None else now_ms(),
            "pending": True,
        }
    )


def seed_quotes(now: int | None = None) -> list[Quote]:
    """Built-in quotes used when no snapshot exists."""
    stamp = now if now is not None else now_ms()
    seeded: list[Quote] = []
    taken: set[str] = set()
    for raw in SEED_QUOTES:
        quote = validate_candidate(raw, now=stamp, taken=taken)
        taken.add(quote.id)
        seeded.append(quote)
    return seeded


# ── Listing ────────────────────────────────────────────────────────────────


def list_categories(quotes: Iterable[Quote]) -> list[str]:
    """Stable de-duplicated categories with the ``all`` wildcard first."""
    seen: dict[str, None] = {}
    for quote in quotes:
        seen.setdefault(quote.category, None)
    seen.pop(ALL_CATEGORIES, None)
    return [ALL_CATEGORIES, *seen]


def filter_by_category(quotes: Iterable[Quote], category: str | None) -> list[Quote]:
    if not category or category == ALL_CATEGORIES:
        return list(quotes)
    return [q for q in quotes if q.category == category]


def pick_random(
    quotes: Iterable[Quote],
    category: str | None = None,
    rng: random.Random | None = None,
) -> Quote | None:
    """Pick one quote at random, optionally restricted to a category."""
    candidates = filter_by_category(quotes, category)
    if not candidates:
        return None
    return (rng or random).choice(candidates)
