"""Local/remote reconciliation engine with a server-wins merge.

One sync cycle runs push -> fetch -> merge -> persist -> notify:

- Push: every pending quote is created remotely; pushes run concurrently
  and all settle before the fetch starts. A successful push moves the quote
  to remote provenance, clears pending and refreshes updated_at. A failed
  push leaves the quote untouched for the next cycle.
- Fetch: the remote list. A transport failure yields no remote quotes and
  a degraded status; the cycle carries on.
- Merge (server wins): remote quotes with unknown ids are added, known ids
  are overwritten. Overwriting a pending local edit, or a quote pushed in
  this same cycle whose remote copy disagrees with it, is reported as a
  conflict. Local quotes absent from the fetch are kept.

Cycles are serialized: a trigger arriving while a cycle is in flight
returns a skipped result instead of interleaving with it.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Collection, Container, Iterable
from typing import Union

import structlog

from src.quotesync.core.exceptions import TransportError
from src.quotesync.quotes.model import now_ms
from src.quotesync.quotes.schemas import (
    REMOTE_PREFIX,
    MergeResult,
    Provenance,
    PushOutcome,
    Quote,
    SyncConflict,
    SyncResult,
    SyncStatus,
)
from src.quotesync.quotes.state import QuoteState
from src.quotesync.storage.persistence import QuoteStore
from src.quotesync.sync.gateway import RemoteGateway

logger = structlog.get_logger(__name__)

SyncListener = Callable[[SyncResult], Union[None, Awaitable[None]]]


def free_remote_ref(ref: str, taken: Container[str]) -> str:
    """Return ``ref``, or ``ref-<n>`` with the smallest n whose id is not taken."""
    if f"{REMOTE_PREFIX}{ref}" not in taken:
        return ref
    n = 1
    while f"{REMOTE_PREFIX}{ref}-{n}" in taken:
        n += 1
    return f"{ref}-{n}"


def merge_remote(
    local: Iterable[Quote],
    remote: Iterable[Quote],
    just_pushed: Collection[str] = (),
) -> MergeResult:
    """Server-wins merge of fetched quotes into the local set.

    Args:
        local: Current local quotes.
        remote: Quotes fetched from the remote collection.
        just_pushed: Ids assigned by pushes earlier in the same cycle.

    Returns:
        MergeResult with the full merged set and the conflicts detected.
    """
    merged: dict[str, Quote] = {q.id: q for q in local}

    incoming: dict[str, Quote] = {}
    for server in remote:
        incoming[server.id] = server.model_copy(update={"pending": False})

    conflicts: list[SyncConflict] = []
    added = 0
    overwritten = 0

    for quote_id, server in incoming.items():
        existing = merged.get(quote_id)
        if existing is None:
            merged[quote_id] = server
            added += 1
            continue

        unconfirmed_push = quote_id in just_pushed and not existing.same_content(server)
        if existing.pending or unconfirmed_push:
            conflicts.append(SyncConflict(local=existing, remote=server))
            logger.info(
                "sync.conflict_server_wins",
                quote_id=quote_id,
                local_text=existing.text,
                remote_text=server.text,
            )

        if existing != server:
            overwritten += 1
        merged[quote_id] = server

    return MergeResult(
        quotes=list(merged.values()),
        conflicts=conflicts,
        added=added,
        overwritten=overwritten,
    )


class SyncEngine:
    """Orchestrates push, fetch and merge against the shared QuoteState.

    Args:
        state: The owned record set, mutated in place.
        gateway: Remote collection client.
        store: Persistence adapter used to save the merged snapshot.
    """

    def __init__(self, state: QuoteState, gateway: RemoteGateway, store: QuoteStore) -> None:
        self._state = state
        self._gateway = gateway
        self._store = store
        self._lock = asyncio.Lock()
        self._listeners: list[SyncListener] = []
        self.last_result: SyncResult | None = None

    @property
    def in_progress(self) -> bool:
        """True while a cycle holds the re-entrancy guard."""
        return self._lock.locked()

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register a callback invoked with each cycle's SyncResult.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── Phases ──────────────────────────────────────────────────────────

    async def _push_one(self, quote: Quote) -> tuple[Quote, str | None, str | None]:
        try:
            remote_id = await self._gateway.push_record(quote)
        except TransportError as exc:
            return quote, None, str(exc)
        return quote, remote_id, None

    async def push_pending(self) -> PushOutcome:
        """Push every pending quote; failures stay pending for the next cycle."""
        pending = self._state.pending()
        if not pending:
            return PushOutcome()

        results = await asyncio.gather(
            *(self._push_one(q) for q in pending),
            return_exceptions=True,
        )

        outcome = PushOutcome()
        for original, result in zip(pending, results):
            if isinstance(result, BaseException):
                error_msg = f"Push failed for {original.id}: {result}"
                outcome.errors.append(error_msg)
                logger.error("sync.push_error", quote_id=original.id, error=str(result))
                continue

            quote, remote_id, error = result
            if error is not None or remote_id is None:
                outcome.errors.append(error or f"Push failed for {quote.id}")
                continue

            if self._state.get(quote.id) is not quote:
                # Edited or replaced while the push was in flight; retried next cycle
                logger.info("sync.push_superseded", quote_id=quote.id)
                continue

            taken = self._state.ids() - {quote.id}
            remote_ref = free_remote_ref(remote_id, taken)
            if remote_ref != remote_id:
                # Remote handed out an id another quote already holds
                logger.warning(
                    "sync.push_id_collision",
                    quote_id=quote.id,
                    remote_id=remote_id,
                    assigned_ref=remote_ref,
                )

            pushed = quote.model_copy(
                update={
                    "provenance": Provenance.REMOTE,
                    "ref": remote_ref,
                    "pending": False,
                    "updated_at": now_ms(),
                }
            )
            self._state.reassign(quote.id, pushed)
            outcome.pushed += 1
            outcome.pushed_ids.append(pushed.id)

        logger.info("sync.push_complete", pushed=outcome.pushed, errors=len(outcome.errors))
        return outcome

    async def fetch(self) -> tuple[list[Quote], list[str]]:
        """Fetch remote quotes. A transport failure yields ([], [error])."""
        try:
            return await self._gateway.fetch_remote(), []
        except TransportError as exc:
            logger.warning("sync.fetch_error", error=str(exc))
            return [], [str(exc)]

    def merge(self, remote: Iterable[Quote], just_pushed: Collection[str] = ()) -> MergeResult:
        """Apply a server-wins merge to the shared state."""
        result = merge_remote(self._state, remote, just_pushed)
        self._state.replace_all(result.quotes)
        logger.info(
            "sync.merge_complete",
            added=result.added,
            overwritten=result.overwritten,
            conflicts=len(result.conflicts),
        )
        return result

    # ── Cycle ───────────────────────────────────────────────────────────

    async def run_cycle(self) -> SyncResult:
        """Run one push -> fetch -> merge -> persist -> notify cycle.

        Never raises: failures are reported through SyncResult.status.
        Mutations applied before a failure are kept.
        """
        if self._lock.locked():
            logger.info("sync.cycle_skipped", reason="cycle_in_progress")
            return SyncResult(total=len(self._state), status=SyncStatus.SKIPPED)

        async with self._lock:
            result = SyncResult()
            try:
                push = await self.push_pending()
                result.pushed = push.pushed
                result.errors.extend(push.errors)

                remote, fetch_errors = await self.fetch()
                result.errors.extend(fetch_errors)

                merged = self.merge(remote, push.pushed_ids)
                result.conflicts = len(merged.conflicts)
                result.conflict_details = merged.conflicts

                await self._store.save(self._state)
                result.status = SyncStatus.DEGRADED if result.errors else SyncStatus.OK
            except Exception as exc:
                logger.exception("sync.cycle_failed")
                result.errors.append(f"Sync failed: {exc}")
                result.status = SyncStatus.FAILED

            result.total = len(self._state)
            self.last_result = result

            logger.info(
                "sync.cycle_complete",
                status=result.status.value,
                categories=len(self._state.categories),
                **result.summary(),
            )

        await self._notify(result)
        return result

    async def _notify(self, result: SyncResult) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.warning("sync.listener_failed", exc_info=True)
