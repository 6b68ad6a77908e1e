"""Level repository operations for the SQLite store.

The projector is the only writer. Levels are inserted once through
:func:`insert_level_if_absent` and afterwards only ever see
``completion_count`` increments.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Literal

from yibi_indexer.db.connection import connection_scope
from yibi_indexer.db.errors import raise_read_error, raise_write_error
from yibi_indexer.db.types import LevelRecord, from_db_timestamp, to_db_timestamp

LevelSortField = Literal["level_id", "created_at", "completion_count", "size"]

_SORT_COLUMNS: dict[str, str] = {
    "level_id": "level_id",
    "created_at": "created_at",
    "completion_count": "completion_count",
    "size": "size",
}

_LEVEL_COLUMNS = (
    "level_id, name, size, creator, tx_hash, hints, hint_count, completion_count, created_at"
)


def _row_to_level(row: sqlite3.Row) -> LevelRecord:
    return LevelRecord(
        level_id=int(row["level_id"]),
        name=row["name"],
        size=int(row["size"]),
        creator=row["creator"],
        tx_hash=row["tx_hash"],
        hints=json.loads(row["hints"] or "[]"),
        hint_count=int(row["hint_count"]),
        completion_count=int(row["completion_count"]),
        created_at=from_db_timestamp(row["created_at"]),
    )


def get_level(level_id: int) -> LevelRecord | None:
    """Return the level with ``level_id`` or ``None`` when not indexed yet."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                f"SELECT {_LEVEL_COLUMNS} FROM levels WHERE level_id = ?",  # nosec B608
                (level_id,),
            ).fetchone()
    except Exception as exc:
        raise_read_error("levels.get_level", exc, details=f"level_id={level_id}")
    return _row_to_level(row) if row else None


def level_exists(level_id: int) -> bool:
    """Return ``True`` when a level with ``level_id`` has been indexed."""
    try:
        with connection_scope() as conn:
            row = conn.execute(
                "SELECT 1 FROM levels WHERE level_id = ? LIMIT 1", (level_id,)
            ).fetchone()
    except Exception as exc:
        raise_read_error("levels.level_exists", exc, details=f"level_id={level_id}")
    return row is not None


def insert_level_if_absent(record: LevelRecord) -> bool:
    """Insert ``record`` unless its ``level_id`` is already present.

    The primary-key conflict is resolved inside SQLite (``INSERT OR IGNORE``),
    so two concurrent deliveries of the same creation event cannot both
    insert.

    Returns:
        ``True`` when this call inserted the row, ``False`` when a row with
        the same ``level_id`` already existed.
    """
    created_at = record.created_at or datetime.now(UTC)
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO levels (
                    level_id,
                    name,
                    size,
                    creator,
                    tx_hash,
                    hints,
                    hint_count,
                    completion_count,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.level_id,
                    record.name,
                    record.size,
                    record.creator,
                    record.tx_hash,
                    json.dumps(record.hints),
                    record.hint_count,
                    record.completion_count,
                    to_db_timestamp(created_at),
                ),
            )
            return cursor.rowcount == 1
    except Exception as exc:
        raise_write_error(
            "levels.insert_level_if_absent", exc, details=f"level_id={record.level_id}"
        )


def _increment_completion_count(cursor: sqlite3.Cursor, level_id: int) -> bool:
    """Bump ``completion_count`` inside the caller's transaction."""
    cursor.execute(
        "UPDATE levels SET completion_count = completion_count + 1 WHERE level_id = ?",
        (level_id,),
    )
    return cursor.rowcount == 1


def increment_completion_count(level_id: int) -> bool:
    """Increment a level's completion count.

    Returns:
        ``True`` when the level exists and was incremented, ``False`` when no
        level with ``level_id`` is indexed (nothing is written).
    """
    try:
        with connection_scope(write=True) as conn:
            return _increment_completion_count(conn.cursor(), level_id)
    except Exception as exc:
        raise_write_error(
            "levels.increment_completion_count", exc, details=f"level_id={level_id}"
        )


def list_levels(
    *,
    limit: int = 10,
    offset: int = 0,
    sort: LevelSortField = "level_id",
    descending: bool = False,
    creator: str | None = None,
) -> list[LevelRecord]:
    """Return one page of levels.

    Args:
        limit: Page size.
        offset: Rows to skip.
        sort: Column to order by; unknown values fall back to ``level_id``.
        descending: Reverse the sort order.
        creator: Restrict to levels created by this address.
    """
    column = _SORT_COLUMNS.get(sort, "level_id")
    direction = "DESC" if descending else "ASC"
    where = ""
    params: list[object] = []
    if creator is not None:
        where = "WHERE creator = ?"
        params.append(creator)
    # Tie-break on level_id so pages are stable when the sort column repeats.
    query = f"""
        SELECT {_LEVEL_COLUMNS}
        FROM levels
        {where}
        ORDER BY {column} {direction}, level_id ASC
        LIMIT ? OFFSET ?
    """  # nosec B608
    params.extend([limit, offset])
    try:
        with connection_scope() as conn:
            rows = conn.execute(query, params).fetchall()
    except Exception as exc:
        raise_read_error("levels.list_levels", exc, details=f"sort={sort!r}")
    return [_row_to_level(row) for row in rows]


def count_levels(*, creator: str | None = None) -> int:
    """Return the number of indexed levels, optionally for one creator."""
    try:
        with connection_scope() as conn:
            if creator is None:
                row = conn.execute("SELECT COUNT(*) FROM levels").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM levels WHERE creator = ?", (creator,)
                ).fetchone()
    except Exception as exc:
        raise_read_error("levels.count_levels", exc)
    return int(row[0])
