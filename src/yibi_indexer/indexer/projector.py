"""Idempotent projection of canonical events into the store.

Both synchronization paths (historical backfill and realtime subscription)
call the same two handlers; there is exactly one projection code path.

Duplicate suppression uses natural keys in the store rather than a separate
delivery ledger:

- ``LevelCreated``: ``level_id`` (primary key, conditional insert).
- ``LevelSolved``: ``(level_id, tx_hash)`` (unique key, conditional insert).

Re-applying an already-applied event is a no-op that reports ``"duplicate"``,
never an error.

Store calls run in a worker thread via ``asyncio.to_thread`` so a locked
SQLite file (``busy_timeout``) does not stall the WebSocket listener.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Literal

from yibi_indexer.chain.events import LevelCreated, LevelSolved
from yibi_indexer.chain.source import ChainEventSource, TransportError
from yibi_indexer.db import levels_repo, solves_repo
from yibi_indexer.db.types import LevelRecord, SolveRecord

logger = logging.getLogger(__name__)

CreatedOutcome = Literal["applied", "duplicate", "dropped"]
SolvedOutcome = Literal["applied", "orphaned", "duplicate", "dropped"]


class EventProjector:
    """Turns one canonical event into at most one effective store mutation.

    Args:
        source: Used for the supplementary reads (block time, full level).
    """

    def __init__(self, source: ChainEventSource) -> None:
        self._source = source

    async def _resolve_time(self, tx_hash: str, block_number: int | None) -> datetime:
        """Block time of the event, or the processing time when lookup fails."""
        try:
            return await self._source.block_time(tx_hash, block_number)
        except TransportError as exc:
            logger.warning(
                "Block time lookup failed for %s, using processing time: %s", tx_hash, exc
            )
            return datetime.now(UTC)

    async def handle_created(self, event: LevelCreated) -> CreatedOutcome:
        """Materialize a level from its creation event.

        Raises:
            TransportError: ``getLevel`` failed; the level is not written.
        """
        if not event.tx_hash:
            logger.error("LevelCreated event missing tx hash, dropping: %r", event)
            return "dropped"

        if await asyncio.to_thread(levels_repo.level_exists, event.level_id):
            return "duplicate"

        created_at = await self._resolve_time(event.tx_hash, event.block_number)
        level = await self._source.read_level(event.level_id)

        inserted = await asyncio.to_thread(
            levels_repo.insert_level_if_absent,
            LevelRecord(
                level_id=event.level_id,
                name=event.name,
                size=event.size,
                creator=event.creator,
                tx_hash=event.tx_hash,
                hints=[hint.to_dict() for hint in level.hints],
                hint_count=event.hint_count,
                created_at=created_at,
                completion_count=0,
            ),
        )
        if not inserted:
            # Another delivery won the race between the existence check and here.
            return "duplicate"

        logger.info("Saved level %s (name=%s) tx=%s", event.level_id, event.name, event.tx_hash)
        return "applied"

    async def handle_solved(self, event: LevelSolved) -> SolvedOutcome:
        """Record a completion and bump the level's completion count."""
        if not event.tx_hash:
            logger.error("LevelSolved event missing tx hash, dropping: %r", event)
            return "dropped"

        timestamp = await self._resolve_time(event.tx_hash, event.block_number)
        result = await asyncio.to_thread(
            solves_repo.record_solve,
            SolveRecord(
                level_id=event.level_id,
                solver_address=event.solver,
                tx_hash=event.tx_hash,
                timestamp=timestamp,
            ),
        )
        if not result.inserted:
            return "duplicate"

        if not result.level_incremented:
            logger.warning(
                "Level %s not indexed yet; completion from %s recorded without increment",
                event.level_id,
                event.solver,
            )
            return "orphaned"

        logger.info(
            "Saved solve level=%s solver=%s tx=%s", event.level_id, event.solver, event.tx_hash
        )
        return "applied"

    async def handle(self, event: LevelCreated | LevelSolved) -> str:
        """Route ``event`` to the handler for its kind."""
        if isinstance(event, LevelCreated):
            return await self.handle_created(event)
        return await self.handle_solved(event)
