"""Ledger access: canonical events and the transports that produce them.

Public surface
--------------
- :class:`ChainEventSource`: interface used by the indexer core.
- :class:`TransportError`: raised by every ledger call on failure.
- :class:`LevelCreated`, :class:`LevelSolved`, :class:`LevelData`, :class:`Hint`:
  canonical, transport-independent types.
- :class:`EventKind`: the two contract events.

``Web3EventSource`` is imported from :mod:`yibi_indexer.chain.web3_source`
directly so that importing the canonical types does not open any transport.
"""

from yibi_indexer.chain.events import (
    CanonicalEvent,
    EventKind,
    Hint,
    LevelCreated,
    LevelData,
    LevelSolved,
    MalformedEventError,
)
from yibi_indexer.chain.source import ChainEventSource, EventHandler, TransportError

__all__ = [
    "CanonicalEvent",
    "ChainEventSource",
    "EventHandler",
    "EventKind",
    "Hint",
    "LevelCreated",
    "LevelData",
    "LevelSolved",
    "MalformedEventError",
    "TransportError",
]
