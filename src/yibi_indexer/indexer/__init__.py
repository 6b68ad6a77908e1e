"""Indexer core: projection, historical backfill and realtime subscription."""

from yibi_indexer.indexer.coordinator import SyncCoordinator, SyncReport, plan_batches
from yibi_indexer.indexer.projector import EventProjector
from yibi_indexer.indexer.service import IndexerService
from yibi_indexer.indexer.subscriber import RealtimeSubscriber

__all__ = [
    "EventProjector",
    "IndexerService",
    "RealtimeSubscriber",
    "SyncCoordinator",
    "SyncReport",
    "plan_batches",
]
