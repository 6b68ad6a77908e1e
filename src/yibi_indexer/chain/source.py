"""Transport-independent interface to the ledger.

:class:`ChainEventSource` is the seam between the indexer core and the
ledger. The production implementation lives in
:mod:`yibi_indexer.chain.web3_source`; tests substitute an in-memory source.
Every method speaks canonical types from :mod:`yibi_indexer.chain.events`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime

from yibi_indexer.chain.events import CanonicalEvent, EventKind, LevelData

# Async callback invoked once per delivered event.
EventHandler = Callable[[CanonicalEvent], Awaitable[object]]


class TransportError(RuntimeError):
    """A ledger call timed out, failed, or returned something unreadable."""


class ChainEventSource(ABC):
    """One interface over the bounded-query and push-subscription transports."""

    @abstractmethod
    async def query_range(
        self, kind: EventKind, from_block: int, to_block: int
    ) -> list[CanonicalEvent]:
        """Return events of ``kind`` in ``[from_block, to_block]`` in emission order.

        Raises:
            TransportError: On timeout or malformed response.
        """

    @abstractmethod
    async def current_height(self) -> int:
        """Return the latest block number."""

    @abstractmethod
    async def subscribe(self, kind: EventKind, handler: EventHandler) -> None:
        """Register ``handler`` for every pushed event of ``kind``.

        Delivery is at-least-once and unordered with respect to other kinds.
        The registration lives until :meth:`close`.
        """

    @abstractmethod
    async def block_time(self, tx_ref: str, block_number: int | None = None) -> datetime:
        """Return the UTC block time for the block containing ``tx_ref``.

        Raises:
            TransportError: Callers substitute a fallback instead of propagating.
        """

    @abstractmethod
    async def read_level(self, level_id: int) -> LevelData:
        """Return the full level structure, including its hint list."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while the push-subscription transport is up."""

    async def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None
