"""Quote records -- schemas, validation rules and the owned state container.

Provides:
- Quote / Provenance: the record entity with explicit provenance
- validate_candidate / create_local: the only ways records enter the set
- QuoteState: single owned container passed to the store and sync engine
"""

from src.quotesync.quotes.model import (
    ALL_CATEGORIES,
    create_local,
    list_categories,
    pick_random,
    revise,
    seed_quotes,
    validate_candidate,
)
from src.quotesync.quotes.schemas import (
    ImportResult,
    Provenance,
    Quote,
    SyncConflict,
    SyncResult,
    SyncStatus,
)
from src.quotesync.quotes.state import QuoteState

__all__ = [
    "ALL_CATEGORIES",
    "ImportResult",
    "Provenance",
    "Quote",
    "QuoteState",
    "SyncConflict",
    "SyncResult",
    "SyncStatus",
    "create_local",
    "list_categories",
    "pick_random",
    "revise",
    "seed_quotes",
    "validate_candidate",
]
