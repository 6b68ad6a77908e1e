"""Realtime path: push subscriptions feeding the shared projector."""

from __future__ import annotations

import logging

from yibi_indexer.chain.events import CanonicalEvent, EventKind
from yibi_indexer.chain.source import ChainEventSource
from yibi_indexer.indexer.projector import EventProjector

logger = logging.getLogger(__name__)


class RealtimeSubscriber:
    """Registers one push subscription per event kind.

    A failure while projecting one pushed event is logged and does not
    affect later events or the subscriptions themselves.
    """

    def __init__(self, source: ChainEventSource, projector: EventProjector) -> None:
        self._source = source
        self._projector = projector
        self.armed = False

    async def _on_event(self, event: CanonicalEvent) -> str | None:
        try:
            return await self._projector.handle(event)
        except Exception:
            logger.exception(
                "Failed to project pushed %s for level %s", event.kind.value, event.level_id
            )
            return None

    async def arm(self) -> None:
        """Subscribe to both event kinds.

        Raises:
            TransportError: The push transport is unavailable.
        """
        if self.armed:
            return
        await self._source.subscribe(EventKind.CREATED, self._on_event)
        await self._source.subscribe(EventKind.SOLVED, self._on_event)
        self.armed = True
        logger.info("Realtime subscriptions active")
