"""Backfill cursor persistence.

A single ``sync_state`` row (``id = 1``) holds the highest block whose events
the backfill pass has durably applied.
"""

from __future__ import annotations

from yibi_indexer.db.connection import connection_scope
from yibi_indexer.db.errors import raise_read_error, raise_write_error


def get_last_synced_block() -> int | None:
    """Return the persisted cursor, or ``None`` before the first batch."""
    try:
        with connection_scope() as conn:
            row = conn.execute("SELECT last_synced_block FROM sync_state WHERE id = 1").fetchone()
    except Exception as exc:
        raise_read_error("sync_state.get_last_synced_block", exc)
    return int(row[0]) if row else None


def set_last_synced_block(block_number: int) -> None:
    """Persist ``block_number`` as the cursor."""
    try:
        with connection_scope(write=True) as conn:
            conn.execute(
                """
                INSERT INTO sync_state (id, last_synced_block, updated_at)
                VALUES (1, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    last_synced_block = excluded.last_synced_block,
                    updated_at = excluded.updated_at
                """,
                (block_number,),
            )
    except Exception as exc:
        raise_write_error(
            "sync_state.set_last_synced_block", exc, details=f"block_number={block_number}"
        )
