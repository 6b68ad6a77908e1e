"""
Historical backfill pass.

The pass replays ``LevelCreated`` and ``LevelSolved`` logs between a start
block and a height captured once when the pass begins:

1. Capture ``height`` (fixed upper bound; later blocks belong to the realtime
   path, which is armed before the pass starts).
2. Partition ``[start, height]`` into contiguous batches of ``batch_size``.
3. Per batch: query creation events, apply them in emission order, then
   query completion events over exactly the same range and apply those.
4. Persist the batch's last block as the cursor, pause
   ``batch_delay_seconds``, continue.

A transport or store failure aborts the rest of the pass. Batches already
applied stay applied, and the cursor points at the last one, so a later pass
can resume from any later start block.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Literal

from yibi_indexer.chain.events import EventKind
from yibi_indexer.chain.source import ChainEventSource, TransportError
from yibi_indexer.config import SyncSettings
from yibi_indexer.db import sync_state_repo
from yibi_indexer.db.errors import DatabaseError
from yibi_indexer.indexer.projector import EventProjector

logger = logging.getLogger(__name__)

SyncStatus = Literal["completed", "skipped", "disabled", "failed"]


def plan_batches(start: int, height: int, width: int) -> list[tuple[int, int]]:
    """Partition ``[start, height]`` into inclusive ``(from, to)`` batches.

    The batches are contiguous, non-overlapping and cover the range exactly
    once; the last one is truncated at ``height``.

    Example:
        >>> plan_batches(100, 125, 10)
        [(100, 109), (110, 119), (120, 125)]
    """
    if width <= 0:
        raise ValueError("batch width must be positive")
    batches: list[tuple[int, int]] = []
    from_block = start
    while from_block <= height:
        to_block = min(from_block + width - 1, height)
        batches.append((from_block, to_block))
        from_block = to_block + 1
    return batches


@dataclass(slots=True)
class SyncReport:
    """Outcome of one :meth:`SyncCoordinator.run_backfill` call.

    Attributes:
        status: ``completed`` (reached the captured height), ``skipped``
            (another pass was running), ``disabled`` (no positive start
            block) or ``failed`` (aborted by an error).
        from_block: First block of the planned range.
        to_block: Height captured at the start of the pass.
        batches: Number of batches fully applied.
        created: Creation events fed to the projector.
        solved: Completion events fed to the projector.
        last_synced_block: Cursor after the pass.
        error: Error text when ``status == "failed"``.
    """

    status: SyncStatus
    from_block: int | None = None
    to_block: int | None = None
    batches: int = 0
    created: int = 0
    solved: int = 0
    last_synced_block: int | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class SyncCoordinator:
    """Drives the bounded historical backfill.

    Only one pass runs at a time; a call made while a pass is in flight
    returns a ``skipped`` report immediately.

    Args:
        source: Ledger access used for height and range queries.
        projector: Shared projector (the same instance the realtime path uses).
        settings: Start block, batch width and inter-batch delay.
    """

    def __init__(
        self,
        source: ChainEventSource,
        projector: EventProjector,
        settings: SyncSettings,
    ) -> None:
        self._source = source
        self._projector = projector
        self._settings = settings
        self._syncing = False
        self.last_synced_block: int | None = None

    @property
    def syncing(self) -> bool:
        return self._syncing

    def restore_cursor(self) -> int | None:
        """Load the persisted cursor into memory (for status reporting)."""
        self.last_synced_block = sync_state_repo.get_last_synced_block()
        return self.last_synced_block

    def _commit_cursor(self, block_number: int) -> None:
        sync_state_repo.set_last_synced_block(block_number)
        self.last_synced_block = block_number

    async def run_backfill(self, start_override: int | None = None) -> SyncReport:
        """Run one backfill pass.

        Args:
            start_override: Start block to use instead of ``settings.start_block``
                (used to resume from a later block after a failed pass).
        """
        if self._syncing:
            logger.info("Backfill already in progress; ignoring request")
            return SyncReport(status="skipped", last_synced_block=self.last_synced_block)

        self._syncing = True
        try:
            return await self._run_pass(start_override)
        finally:
            self._syncing = False

    async def _run_pass(self, start_override: int | None) -> SyncReport:
        start = start_override if start_override is not None else self._settings.start_block
        if start is None or start <= 0:
            logger.warning("Start block not configured or <= 0; skipping historical sync")
            return SyncReport(status="disabled", last_synced_block=self.last_synced_block)

        report = SyncReport(status="completed", from_block=start)
        try:
            height = await self._source.current_height()
        except TransportError as exc:
            logger.error("Backfill aborted: could not read block height: %s", exc)
            report.status = "failed"
            report.error = str(exc)
            report.last_synced_block = self.last_synced_block
            return report

        report.to_block = height
        width = self._settings.batch_size
        batches = plan_batches(start, height, width)
        logger.info(
            "Sync plan: blocks %s to %s in %d batches of %d", start, height, len(batches), width
        )

        for index, (from_block, to_block) in enumerate(batches):
            try:
                created, solved = await self._apply_batch(from_block, to_block)
                self._commit_cursor(to_block)
            except (TransportError, DatabaseError) as exc:
                logger.error(
                    "Backfill aborted in batch %s-%s (cursor stays at %s): %s",
                    from_block,
                    to_block,
                    self.last_synced_block,
                    exc,
                    exc_info=True,
                )
                report.status = "failed"
                report.error = str(exc)
                break

            report.batches += 1
            report.created += created
            report.solved += solved
            logger.info(
                "Processed batch %s-%s: created=%d, solved=%d",
                from_block,
                to_block,
                created,
                solved,
            )
            if index < len(batches) - 1 and self._settings.batch_delay_seconds > 0:
                await asyncio.sleep(self._settings.batch_delay_seconds)

        report.last_synced_block = self.last_synced_block
        if report.status == "completed":
            logger.info("Sync complete at block %s", self.last_synced_block)
        return report

    async def _apply_batch(self, from_block: int, to_block: int) -> tuple[int, int]:
        """Apply creations then completions for one batch; return their counts."""
        created_events = await self._source.query_range(EventKind.CREATED, from_block, to_block)
        for event in created_events:
            await self._projector.handle(event)

        solved_events = await self._source.query_range(EventKind.SOLVED, from_block, to_block)
        for event in solved_events:
            await self._projector.handle(event)

        return len(created_events), len(solved_events)
