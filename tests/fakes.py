"""
In-memory ledger used by the indexer tests.

``FakeEventSource`` implements :class:`ChainEventSource` over plain lists so
backfill, realtime delivery and projection can be driven deterministically:

- ``add()`` places an event on the fake chain (seen by ``query_range``).
- ``push()`` delivers an event to the registered realtime handlers.
- ``fail_*`` switches make individual ledger calls raise ``TransportError``.
- ``block_time_delay`` makes ``block_time`` yield so concurrent deliveries
  interleave.
"""

import asyncio
from datetime import UTC, datetime, timedelta

from yibi_indexer.chain.events import (
    CanonicalEvent,
    EventKind,
    Hint,
    LevelCreated,
    LevelData,
    LevelSolved,
)
from yibi_indexer.chain.source import ChainEventSource, EventHandler, TransportError

GENESIS_TIME = datetime(2024, 1, 1, tzinfo=UTC)
CREATOR = "0x1111111111111111111111111111111111111111"
SOLVER = "0x2222222222222222222222222222222222222222"


def tx(n: int) -> str:
    """Deterministic 32-byte transaction hash for ``n``."""
    return "0x" + f"{n:064x}"


def make_created(
    level_id: int,
    block_number: int,
    *,
    size: int = 4,
    hint_count: int = 3,
    name: str | None = None,
    tx_hash: str | None = "auto",
    log_index: int = 0,
) -> LevelCreated:
    return LevelCreated(
        level_id=level_id,
        creator=CREATOR,
        name=name or f"Level {level_id}",
        size=size,
        hint_count=hint_count,
        tx_hash=tx(level_id * 1000 + block_number) if tx_hash == "auto" else tx_hash,
        block_number=block_number,
        log_index=log_index,
    )


def make_solved(
    level_id: int,
    block_number: int,
    *,
    solver: str = SOLVER,
    tx_hash: str | None = "auto",
    log_index: int = 1,
) -> LevelSolved:
    return LevelSolved(
        level_id=level_id,
        solver=solver,
        path_length=9,
        is_first=False,
        tx_hash=tx(500_000 + level_id * 1000 + block_number) if tx_hash == "auto" else tx_hash,
        block_number=block_number,
        log_index=log_index,
    )


def make_level_data(event: LevelCreated) -> LevelData:
    hints = tuple(Hint(x=i, y=i, value=i + 1) for i in range(event.hint_count))
    return LevelData(
        level_id=event.level_id,
        name=event.name,
        size=event.size,
        creator=event.creator,
        hints=hints,
    )


class FakeEventSource(ChainEventSource):
    """Deterministic in-memory ledger."""

    def __init__(self, height: int = 0) -> None:
        self.height = height
        self.events: dict[EventKind, list[CanonicalEvent]] = {
            EventKind.CREATED: [],
            EventKind.SOLVED: [],
        }
        self.levels: dict[int, LevelData] = {}
        self.handlers: dict[EventKind, list[EventHandler]] = {
            EventKind.CREATED: [],
            EventKind.SOLVED: [],
        }
        self.queries: list[tuple[EventKind, int, int]] = []
        self.fail_block_time = False
        self.block_time_delay = 0.0
        self.fail_read_level = False
        self.fail_height = False
        self.fail_query_at: int | None = None
        self.subscribe_error: Exception | None = None
        self.closed = False

    def add(self, event: CanonicalEvent) -> CanonicalEvent:
        """Place ``event`` on the chain; creation events also register level data."""
        self.events[event.kind].append(event)
        if isinstance(event, LevelCreated):
            self.levels[event.level_id] = make_level_data(event)
        return event

    async def push(self, event: CanonicalEvent) -> None:
        """Deliver ``event`` through the realtime handlers."""
        if isinstance(event, LevelCreated):
            self.levels.setdefault(event.level_id, make_level_data(event))
        for handler in self.handlers[event.kind]:
            await handler(event)

    async def query_range(
        self, kind: EventKind, from_block: int, to_block: int
    ) -> list[CanonicalEvent]:
        self.queries.append((kind, from_block, to_block))
        if self.fail_query_at is not None and from_block <= self.fail_query_at <= to_block:
            raise TransportError(f"query timed out for {from_block}-{to_block}")
        matching = [
            event
            for event in self.events[kind]
            if event.block_number is not None and from_block <= event.block_number <= to_block
        ]
        return sorted(matching, key=lambda e: (e.block_number, e.log_index or 0))

    async def current_height(self) -> int:
        if self.fail_height:
            raise TransportError("eth_blockNumber failed")
        return self.height

    async def subscribe(self, kind: EventKind, handler: EventHandler) -> None:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.handlers[kind].append(handler)

    async def block_time(self, tx_ref: str, block_number: int | None = None) -> datetime:
        if self.block_time_delay:
            await asyncio.sleep(self.block_time_delay)
        if self.fail_block_time:
            raise TransportError(f"receipt lookup failed for {tx_ref}")
        return GENESIS_TIME + timedelta(seconds=12 * (block_number or 0))

    async def read_level(self, level_id: int) -> LevelData:
        if self.fail_read_level or level_id not in self.levels:
            raise TransportError(f"getLevel({level_id}) reverted")
        return self.levels[level_id]

    @property
    def connected(self) -> bool:
        return not self.closed and any(self.handlers.values())

    async def close(self) -> None:
        self.closed = True
