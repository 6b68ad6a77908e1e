"""web3-backed :class:`ChainEventSource`.

Two transports share one ABI:

- ``AsyncWeb3`` + ``AsyncHTTPProvider`` for bounded ``eth_getLogs`` range
  queries, the block height, block timestamps and the ``getLevel`` view.
- ``AsyncWeb3`` + ``WebSocketProvider`` for ``eth_subscribe("logs")``. One
  socket carries one subscription per event kind; a single listener task
  dispatches each message by subscription id.

Every decoded log is passed through :mod:`yibi_indexer.chain.events` before
leaving this module. Any failure inside a ledger call is re-raised as
:class:`TransportError`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3, WebSocketProvider

from yibi_indexer.chain.abi import event_topic, load_abi
from yibi_indexer.chain.events import (
    CanonicalEvent,
    EventKind,
    LevelData,
    MalformedEventError,
    normalize_event,
    normalize_level,
)
from yibi_indexer.chain.source import ChainEventSource, EventHandler, TransportError
from yibi_indexer.config import ChainSettings

logger = logging.getLogger(__name__)

# Bounded so a long-running process does not accumulate every block it saw.
_BLOCK_TIME_CACHE_SIZE = 4096


def _emission_order(event: CanonicalEvent) -> tuple[int, int]:
    return (event.block_number or 0, event.log_index or 0)


class Web3EventSource(ChainEventSource):
    """Ledger access through ``web3``.

    Args:
        settings: Endpoints, contract address and optional ABI path.
    """

    def __init__(self, settings: ChainSettings) -> None:
        if not settings.contract_address:
            raise ValueError("chain.contract_address is not configured")
        self._settings = settings
        self._abi = load_abi(settings.abi_path or None)
        self._address = Web3.to_checksum_address(settings.contract_address)

        self._http = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
        self._contract = self._http.eth.contract(address=self._address, abi=self._abi)

        self._ws: AsyncWeb3 | None = None
        self._ws_lock = asyncio.Lock()
        self._subscriptions: dict[str, tuple[EventKind, EventHandler]] = {}
        self._listener: asyncio.Task[None] | None = None
        self._block_times: dict[int, datetime] = {}

    # ------------------------------------------------------------------
    # Bounded query transport
    # ------------------------------------------------------------------

    def _contract_event(self, kind: EventKind) -> Any:
        return getattr(self._contract.events, kind.value)()

    async def query_range(
        self, kind: EventKind, from_block: int, to_block: int
    ) -> list[CanonicalEvent]:
        try:
            logs = await self._contract_event(kind).get_logs(
                from_block=from_block, to_block=to_block
            )
        except Exception as exc:
            raise TransportError(
                f"{kind.value} query failed for blocks {from_block}-{to_block}: {exc}"
            ) from exc
        try:
            events = [normalize_event(kind, log) for log in logs]
        except MalformedEventError as exc:
            raise TransportError(f"malformed {kind.value} log in {from_block}-{to_block}") from exc
        return sorted(events, key=_emission_order)

    async def current_height(self) -> int:
        try:
            return int(await self._http.eth.block_number)
        except Exception as exc:
            raise TransportError(f"block height lookup failed: {exc}") from exc

    async def block_time(self, tx_ref: str, block_number: int | None = None) -> datetime:
        try:
            if block_number is None:
                receipt = await self._http.eth.get_transaction_receipt(tx_ref)
                block_number = int(receipt["blockNumber"])
            cached = self._block_times.get(block_number)
            if cached is not None:
                return cached
            block = await self._http.eth.get_block(block_number)
            timestamp = datetime.fromtimestamp(int(block["timestamp"]), UTC)
        except Exception as exc:
            raise TransportError(f"block time lookup failed for {tx_ref}: {exc}") from exc
        if len(self._block_times) >= _BLOCK_TIME_CACHE_SIZE:
            self._block_times.clear()
        self._block_times[block_number] = timestamp
        return timestamp

    async def read_level(self, level_id: int) -> LevelData:
        try:
            raw = await self._contract.functions.getLevel(level_id).call()
            return normalize_level(raw)
        except Exception as exc:
            raise TransportError(f"getLevel({level_id}) failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Push subscription transport
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._listener is not None and not self._listener.done()

    async def _socket(self) -> AsyncWeb3:
        async with self._ws_lock:
            if self._ws is None:
                if not self._settings.ws_url:
                    raise TransportError("chain.ws_url is not configured")
                ws = AsyncWeb3(WebSocketProvider(self._settings.ws_url))
                try:
                    await ws.provider.connect()
                except Exception as exc:
                    raise TransportError(f"websocket connect failed: {exc}") from exc
                self._ws = ws
                logger.info("WebSocket connected to %s...", self._settings.ws_url[:20])
            return self._ws

    async def subscribe(self, kind: EventKind, handler: EventHandler) -> None:
        ws = await self._socket()
        topic = event_topic(self._abi, kind)
        try:
            subscription_id = await ws.eth.subscribe(
                "logs", {"address": self._address, "topics": [topic]}
            )
        except Exception as exc:
            raise TransportError(f"eth_subscribe for {kind.value} failed: {exc}") from exc
        self._subscriptions[str(subscription_id)] = (kind, handler)
        logger.info("Subscribed to %s (subscription %s)", kind.value, subscription_id)
        if self._listener is None or self._listener.done():
            self._listener = asyncio.create_task(self._listen(ws), name="yibi-ws-listener")

    async def _listen(self, ws: AsyncWeb3) -> None:
        try:
            async for message in ws.socket.process_subscriptions():
                await self._dispatch(message)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("WebSocket listener stopped", exc_info=True)

    async def _dispatch(self, message: Any) -> None:
        entry = self._subscriptions.get(str(message.get("subscription")))
        if entry is None:
            return
        kind, handler = entry
        try:
            decoded = self._contract_event(kind).process_log(message["result"])
            event = normalize_event(kind, decoded)
        except Exception:
            logger.error("Dropping undecodable %s push message", kind.value, exc_info=True)
            return
        try:
            await handler(event)
        except Exception:
            logger.exception("Unhandled error in %s handler", kind.value)

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._ws is not None:
            try:
                await self._ws.provider.disconnect()
            except Exception:
                logger.warning("WebSocket disconnect failed", exc_info=True)
            self._ws = None
        self._subscriptions.clear()
        try:
            await self._http.provider.disconnect()
        except Exception:
            logger.warning("HTTP provider disconnect failed", exc_info=True)
