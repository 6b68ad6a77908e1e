"""
Indexer service lifecycle.

Wires one source, one projector, the backfill coordinator and the realtime
subscriber together and exposes the status snapshot served over HTTP.

Startup order matters: the realtime subscriptions are armed before the
backfill pass captures its height, so events emitted while the pass runs are
still delivered through the push path (and de-duplicated by the projector if
the pass also sees them).
"""

from __future__ import annotations

import logging

from yibi_indexer.chain.source import ChainEventSource
from yibi_indexer.config import IndexerConfig
from yibi_indexer.db.errors import DatabaseError
from yibi_indexer.indexer.coordinator import SyncCoordinator, SyncReport
from yibi_indexer.indexer.projector import EventProjector
from yibi_indexer.indexer.subscriber import RealtimeSubscriber

logger = logging.getLogger(__name__)


def build_source(cfg: IndexerConfig) -> ChainEventSource:
    """Create the production web3 source for ``cfg``."""
    from yibi_indexer.chain.web3_source import Web3EventSource

    return Web3EventSource(cfg.chain)


class IndexerService:
    """Owns the indexer components for one process.

    Args:
        cfg: Loaded configuration.
        source: Ledger access; defaults to :func:`build_source`.
    """

    def __init__(self, cfg: IndexerConfig, source: ChainEventSource | None = None) -> None:
        self.config = cfg
        self.source = source if source is not None else build_source(cfg)
        self.projector = EventProjector(self.source)
        self.coordinator = SyncCoordinator(self.source, self.projector, cfg.sync)
        self.subscriber = RealtimeSubscriber(self.source, self.projector)

    async def arm_realtime(self) -> bool:
        """Arm push subscriptions; return False when they could not be armed."""
        if not self.config.chain.realtime_enabled:
            logger.warning("No ws_url configured; realtime subscription disabled")
            return False
        try:
            await self.subscriber.arm()
        except Exception:
            logger.error("Failed to arm realtime subscriptions", exc_info=True)
            return False
        return True

    async def start(self) -> SyncReport:
        """Arm realtime delivery, then run one backfill pass.

        Never raises; failures are logged and reflected in the returned report.
        """
        try:
            self.coordinator.restore_cursor()
        except DatabaseError:
            logger.error("Could not read persisted sync cursor", exc_info=True)
        await self.arm_realtime()
        try:
            return await self.coordinator.run_backfill()
        except Exception as exc:
            logger.exception("Backfill pass crashed")
            return SyncReport(
                status="failed",
                last_synced_block=self.coordinator.last_synced_block,
                error=str(exc),
            )

    def status(self) -> dict:
        """Snapshot served by ``GET /debug/indexer-status``."""
        return {
            "connected": self.source.connected,
            "syncing": self.coordinator.syncing,
            "lastSyncedBlock": self.coordinator.last_synced_block,
        }

    async def close(self) -> None:
        await self.source.close()
        logger.info("Indexer stopped")
