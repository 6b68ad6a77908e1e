"""SQLite store for indexed levels, solve records and the backfill cursor."""
