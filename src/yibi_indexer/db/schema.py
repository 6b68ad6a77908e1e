"""Schema creation for the SQLite store.

The schema layer is isolated from the repositories so table changes are
reviewable without wading through query code. Every statement is idempotent;
``init_database()`` is safe to call on every start-up.
"""

from __future__ import annotations

import logging

from yibi_indexer.db.connection import connection_scope
from yibi_indexer.db.errors import raise_write_error

logger = logging.getLogger(__name__)

TABLE_STATEMENTS = (
    # levels.level_id is the natural key; INSERT OR IGNORE on it is the
    # atomic conditional insert used by the projector.
    """
    CREATE TABLE IF NOT EXISTS levels (
        level_id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        size INTEGER NOT NULL,
        creator TEXT NOT NULL,
        tx_hash TEXT NOT NULL,
        hints TEXT NOT NULL DEFAULT '[]',
        hint_count INTEGER NOT NULL DEFAULT 0,
        completion_count INTEGER NOT NULL DEFAULT 0 CHECK (completion_count >= 0),
        created_at TEXT NOT NULL
    )
    """,
    # No foreign key on level_id: completions may be observed before the
    # level they reference.
    """
    CREATE TABLE IF NOT EXISTS solve_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        level_id INTEGER NOT NULL,
        solver_address TEXT NOT NULL,
        tx_hash TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        UNIQUE (level_id, tx_hash)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sync_state (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        last_synced_block INTEGER NOT NULL,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
)

# Read paths used by the query surface: creator lookups, newest/most-solved
# listings, and per-level / per-solver completion history.
INDEX_STATEMENTS = (
    "CREATE INDEX IF NOT EXISTS idx_levels_creator ON levels(creator)",
    "CREATE INDEX IF NOT EXISTS idx_levels_created_at ON levels(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_levels_completion_count ON levels(completion_count)",
    "CREATE INDEX IF NOT EXISTS idx_solve_records_level_id ON solve_records(level_id)",
    "CREATE INDEX IF NOT EXISTS idx_solve_records_solver ON solve_records(solver_address)",
)


def init_database() -> None:
    """Create all tables and indexes if they do not exist."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            for statement in TABLE_STATEMENTS:
                cursor.execute(statement)
            for statement in INDEX_STATEMENTS:
                cursor.execute(statement)
    except Exception as exc:
        raise_write_error("schema.init_database", exc)
    logger.info("Database schema ready")
