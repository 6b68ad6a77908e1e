"""Shared store dataclasses for repository contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class LevelRecord:
    """
    Off-chain replica of one level created on the contract.

    Attributes:
        level_id: Contract-assigned level id (natural key).
        name: Display name chosen by the creator.
        size: Grid side length.
        creator: Creator address as emitted by the contract.
        tx_hash: Transaction that emitted ``LevelCreated``.
        hints: Ordered hint list, each ``{"coord": {"x", "y"}, "value"}``.
        hint_count: Hint count reported by the creation event.
        created_at: Block time of creation, or processing time as fallback.
        completion_count: Number of completions applied so far.
    """

    level_id: int
    name: str
    size: int
    creator: str
    tx_hash: str
    hints: list[dict[str, Any]] = field(default_factory=list)
    hint_count: int = 0
    created_at: datetime | None = None
    completion_count: int = 0


@dataclass(slots=True)
class SolveRecord:
    """
    One observed completion of a level.

    ``id`` is assigned by the store on insert; ``level_id`` may reference a
    level that has not been indexed yet.
    """

    level_id: int
    solver_address: str
    tx_hash: str
    timestamp: datetime
    id: int | None = None


@dataclass(slots=True)
class SolveWrite:
    """
    Result of :func:`yibi_indexer.db.solves_repo.record_solve`.

    Attributes:
        inserted: False when ``(level_id, tx_hash)`` was already recorded.
        level_incremented: True when the level's completion count was bumped.
    """

    inserted: bool
    level_incremented: bool


def to_db_timestamp(value: datetime) -> str:
    """Serialize a datetime to the ISO-8601 text stored in SQLite."""
    return value.isoformat()


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored ISO-8601 timestamp, tolerating NULL."""
    if value is None:
        return None
    return datetime.fromisoformat(value)
