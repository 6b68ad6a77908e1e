"""Solve record repository operations for the SQLite store."""

from __future__ import annotations

import sqlite3
from datetime import datetime

from yibi_indexer.db.connection import connection_scope
from yibi_indexer.db.errors import raise_read_error, raise_write_error
from yibi_indexer.db.levels_repo import _increment_completion_count
from yibi_indexer.db.types import SolveRecord, SolveWrite, to_db_timestamp


def _row_to_solve(row: sqlite3.Row) -> SolveRecord:
    return SolveRecord(
        id=int(row["id"]),
        level_id=int(row["level_id"]),
        solver_address=row["solver_address"],
        tx_hash=row["tx_hash"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


def record_solve(record: SolveRecord) -> SolveWrite:
    """Insert a solve record and bump the level's completion count.

    Both statements run in one transaction:

    1. ``INSERT OR IGNORE`` keyed on ``(level_id, tx_hash)``. A redelivered
       completion event matches the existing row and nothing else happens.
    2. Only when the insert took effect, ``completion_count`` is incremented
       for the level if it is already indexed. An unknown level is left
       alone; the increment is not deferred.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT OR IGNORE INTO solve_records (level_id, solver_address, tx_hash, timestamp)
                VALUES (?, ?, ?, ?)
                """,
                (
                    record.level_id,
                    record.solver_address,
                    record.tx_hash,
                    to_db_timestamp(record.timestamp),
                ),
            )
            if cursor.rowcount != 1:
                return SolveWrite(inserted=False, level_incremented=False)
            record.id = cursor.lastrowid
            incremented = _increment_completion_count(cursor, record.level_id)
            return SolveWrite(inserted=True, level_incremented=incremented)
    except Exception as exc:
        raise_write_error(
            "solves.record_solve",
            exc,
            details=f"level_id={record.level_id}, tx_hash={record.tx_hash!r}",
        )


def list_solves(
    *,
    level_id: int | None = None,
    solver: str | None = None,
    limit: int | None = None,
) -> list[SolveRecord]:
    """Return solve records, newest id first, filtered by level and/or solver."""
    clauses: list[str] = []
    params: list[object] = []
    if level_id is not None:
        clauses.append("level_id = ?")
        params.append(level_id)
    if solver is not None:
        clauses.append("solver_address = ?")
        params.append(solver)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    query = f"""
        SELECT id, level_id, solver_address, tx_hash, timestamp
        FROM solve_records
        {where}
        ORDER BY id DESC
    """  # nosec B608
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    try:
        with connection_scope() as conn:
            rows = conn.execute(query, params).fetchall()
    except Exception as exc:
        raise_read_error(
            "solves.list_solves", exc, details=f"level_id={level_id}, solver={solver!r}"
        )
    return [_row_to_solve(row) for row in rows]


def count_solves(*, level_id: int | None = None) -> int:
    """Return the number of solve records, optionally for one level."""
    try:
        with connection_scope() as conn:
            if level_id is None:
                row = conn.execute("SELECT COUNT(*) FROM solve_records").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM solve_records WHERE level_id = ?", (level_id,)
                ).fetchone()
    except Exception as exc:
        raise_read_error("solves.count_solves", exc, details=f"level_id={level_id}")
    return int(row[0])
