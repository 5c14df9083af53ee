"""Sync layer -- remote gateway, reconciliation engine and periodic scheduler.

Provides:
- RemoteGateway: httpx client for the remote collection (list + create)
- SyncEngine: push -> fetch -> server-wins merge, serialized per cycle
- merge_remote: the pure merge used by SyncEngine
- PeriodicSync: cancellable repeating sync task
"""

from src.quotesync.sync.engine import SyncEngine, merge_remote
from src.quotesync.sync.gateway import RemoteGateway, map_remote_item
from src.quotesync.sync.scheduler import PeriodicSync

__all__ = [
    "PeriodicSync",
    "RemoteGateway",
    "SyncEngine",
    "map_remote_item",
    "merge_remote",
]
