"""YiBi Level Indexer.

Keeps an off-chain, queryable replica of the YiBi puzzle contract's
``LevelCreated`` and ``LevelSolved`` event streams. A bounded historical
backfill and a realtime WebSocket subscription both feed one idempotent
projection layer that writes to SQLite.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("yibi-indexer")
except PackageNotFoundError:
    # Running from a source checkout without `pip install -e .`
    __version__ = "0.0.0-dev"
