"""Shared fixtures for quotesync tests.

Provides:
- In-memory durable/session key/value stores and a QuoteStore over them
- A QuoteState seeded with one local and one remote quote
- A RemoteGateway mock (AsyncMock specced on the class) -- no network calls
- A SyncEngine and QuoteManager wired to the above
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.quotesync.quotes.schemas import Provenance, Quote
from src.quotesync.quotes.state import QuoteState
from src.quotesync.service import QuoteManager
from src.quotesync.storage.kv import MemoryKeyValueStore
from src.quotesync.storage.persistence import QuoteStore
from src.quotesync.sync.engine import SyncEngine
from src.quotesync.sync.gateway import RemoteGateway

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


@pytest.fixture
def durable() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def session() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(durable, session) -> QuoteStore:
    return QuoteStore(durable, session)


@pytest.fixture
def state() -> QuoteState:
    return QuoteState(
        [
            make_quote(ref="A"),
            make_quote(
                ref="1",
                provenance=Provenance.REMOTE,
                text="Don't let yesterday take up too much of today",
                category="Inspiration",
            ),
        ]
    )


@pytest.fixture
def gateway() -> AsyncMock:
    mock = AsyncMock(spec=RemoteGateway)
    mock.fetch_remote.return_value = []
    return mock


@pytest.fixture
def engine(state, gateway, store) -> SyncEngine:
    return SyncEngine(state, gateway, store)


@pytest.fixture
def manager(state, store, engine) -> QuoteManager:
    return QuoteManager(state, store, engine)
