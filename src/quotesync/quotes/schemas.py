"""Pydantic schemas for quotes and sync results.

The ``Quote`` model carries provenance as an explicit enum next to an
opaque ``ref``. The prefixed string id (``loc-...`` / ``srv-...``) only
exists at the serialization boundary: snapshots, import/export files and
merge lookups.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


LOCAL_PREFIX = "loc-"
REMOTE_PREFIX = "srv-"


class Provenance(str, Enum):
    """Where a quote's identity comes from."""

    LOCAL = "local"
    REMOTE = "remote"

    @property
    def prefix(self) -> str:
        return LOCAL_PREFIX if self is Provenance.LOCAL else REMOTE_PREFIX


class SyncStatus(str, Enum):
    """Outcome of a sync cycle as surfaced to the presentation layer."""

    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


# ── Quote ──────────────────────────────────────────────────────────────────


class Quote(BaseModel):
    """A single quote record."""

    ref: str
    provenance: Provenance = Provenance.LOCAL
    text: str
    category: str
    updated_at: int
    pending: bool = False

    @property
    def id(self) -> str:
        """Prefixed identifier, unique within a record set."""
        return f"{self.provenance.prefix}{self.ref}"

    @property
    def is_local(self) -> bool:
        return self.provenance is Provenance.LOCAL

    def to_record(self) -> dict[str, Any]:
        """Serialize to the snapshot/export shape."""
        return {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "updatedAt": self.updated_at,
            "pending": self.pending,
        }

    def same_content(self, other: Quote) -> bool:
        return self.text == other.text and self.category == other.category


# ── Sync Schemas ───────────────────────────────────────────────────────────


class SyncConflict(BaseModel):
    """A local unconfirmed edit discarded in favour of the server version."""

    local: Quote
    remote: Quote

    @property
    def id(self) -> str:
        return self.remote.id


class MergeResult(BaseModel):
    """Output of a server-wins merge."""

    quotes: list[Quote] = Field(default_factory=list)
    conflicts: list[SyncConflict] = Field(default_factory=list)
    added: int = 0
    overwritten: int = 0


class PushOutcome(BaseModel):
    """Result of the push phase."""

    pushed: int = 0
    pushed_ids: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Summary of one sync cycle."""

    pushed: int = 0
    conflicts: int = 0
    total: int = 0
    status: SyncStatus = SyncStatus.OK
    errors: list[str] = Field(default_factory=list)
    conflict_details: list[SyncConflict] = Field(default_factory=list)

    def summary(self) -> dict[str, int]:
        return {"pushed": self.pushed, "conflicts": self.conflicts, "total": self.total}


class ImportResult(BaseModel):
    """Counts reported back to the user after a bulk import."""

    imported: int = 0
    rejected: int = 0
    skipped: int = 0
