"""
Tests for the web3-backed source (yibi_indexer/chain/web3_source.py).

No node is contacted: the contract event objects and the ``eth`` namespace
are replaced with small async stand-ins.
"""

import logging
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest

from yibi_indexer.chain.events import EventKind, LevelSolved
from yibi_indexer.chain.source import TransportError
from yibi_indexer.chain.web3_source import Web3EventSource
from yibi_indexer.config import ChainSettings

ADDRESS = "0x3333333333333333333333333333333333333333"
TX = "0x" + "cd" * 32


def _solved_log(level_id: int, block: int, index: int) -> dict:
    return {
        "args": {"levelId": level_id, "solver": "0xs", "pathLength": 5, "isFirst": False},
        "transactionHash": TX,
        "blockNumber": block,
        "logIndex": index,
    }


class _ContractEvent:
    def __init__(self, logs=None, error=None):
        self.logs = logs or []
        self.error = error
        self.calls = []

    async def get_logs(self, from_block, to_block):
        self.calls.append((from_block, to_block))
        if self.error:
            raise self.error
        return self.logs

    def process_log(self, log):
        return log


@pytest.fixture
def source() -> Web3EventSource:
    return Web3EventSource(ChainSettings(contract_address=ADDRESS))


@pytest.mark.unit
def test_requires_contract_address():
    with pytest.raises(ValueError, match="contract_address"):
        Web3EventSource(ChainSettings(contract_address=""))


@pytest.mark.unit
def test_not_connected_before_subscribe(source):
    assert source.connected is False


@pytest.mark.asyncio
async def test_query_range_normalizes_and_orders(source, monkeypatch):
    contract_event = _ContractEvent(
        logs=[_solved_log(2, 11, 0), _solved_log(1, 10, 3), _solved_log(3, 10, 1)]
    )
    monkeypatch.setattr(source, "_contract_event", lambda kind: contract_event)

    events = await source.query_range(EventKind.SOLVED, 10, 19)

    assert contract_event.calls == [(10, 19)]
    assert [e.level_id for e in events] == [3, 1, 2]
    assert all(isinstance(e, LevelSolved) for e in events)


@pytest.mark.asyncio
async def test_query_range_wraps_transport_failures(source, monkeypatch):
    contract_event = _ContractEvent(error=TimeoutError("read timeout"))
    monkeypatch.setattr(source, "_contract_event", lambda kind: contract_event)

    with pytest.raises(TransportError, match="10-19"):
        await source.query_range(EventKind.CREATED, 10, 19)


@pytest.mark.asyncio
async def test_query_range_rejects_malformed_logs(source, monkeypatch):
    contract_event = _ContractEvent(logs=[{"transactionHash": TX}])
    monkeypatch.setattr(source, "_contract_event", lambda kind: contract_event)

    with pytest.raises(TransportError, match="malformed"):
        await source.query_range(EventKind.SOLVED, 1, 1)


@pytest.mark.asyncio
async def test_block_time_uses_receipt_and_caches(source):
    calls = {"receipt": 0, "block": 0}

    async def get_transaction_receipt(tx_hash):
        calls["receipt"] += 1
        return {"blockNumber": 130}

    async def get_block(number):
        calls["block"] += 1
        return {"timestamp": 1_700_000_000}

    source._http = SimpleNamespace(
        eth=SimpleNamespace(get_transaction_receipt=get_transaction_receipt, get_block=get_block)
    )

    first = await source.block_time(TX)
    second = await source.block_time(TX, 130)

    assert first == second == datetime.fromtimestamp(1_700_000_000, UTC)
    assert calls == {"receipt": 1, "block": 1}


@pytest.mark.asyncio
async def test_block_time_failure_is_transport_error(source):
    async def get_block(number):
        raise ConnectionError("node down")

    source._http = SimpleNamespace(eth=SimpleNamespace(get_block=get_block))

    with pytest.raises(TransportError):
        await source.block_time(TX, 5)


@pytest.mark.asyncio
async def test_subscribe_without_ws_url_fails(source):
    with pytest.raises(TransportError, match="ws_url"):
        await source.subscribe(EventKind.CREATED, lambda event: None)


@pytest.mark.asyncio
async def test_dispatch_routes_by_subscription_and_isolates_errors(source, monkeypatch):
    monkeypatch.setattr(source, "_contract_event", lambda kind: _ContractEvent())
    received = []

    async def good(event):
        received.append(event)

    async def bad(event):
        raise RuntimeError("projector blew up")

    source._subscriptions["0xsolved"] = (EventKind.SOLVED, good)
    source._subscriptions["0xcreated"] = (EventKind.CREATED, bad)

    await source._dispatch({"subscription": "0xsolved", "result": _solved_log(4, 20, 0)})
    await source._dispatch({"subscription": "0xunknown", "result": _solved_log(5, 20, 0)})
    created = {
        "args": {"levelId": 6, "creator": "0xc", "name": "n", "size": 4, "hintsCount": 1},
        "transactionHash": TX,
    }
    await source._dispatch({"subscription": "0xcreated", "result": created})
    await source._dispatch({"subscription": "0xsolved", "result": {"args": {}}})

    assert [e.level_id for e in received] == [4]


class _Provider:
    def __init__(self, error=None):
        self.error = error
        self.disconnected = False

    async def disconnect(self):
        self.disconnected = True
        if self.error:
            raise self.error


@pytest.mark.asyncio
async def test_close_disconnects_http_and_websocket_providers(source):
    http_provider = _Provider()
    ws_provider = _Provider()
    source._http = SimpleNamespace(provider=http_provider)
    source._ws = SimpleNamespace(provider=ws_provider)
    source._subscriptions["0xsolved"] = (EventKind.SOLVED, None)

    await source.close()

    assert http_provider.disconnected is True
    assert ws_provider.disconnected is True
    assert source._ws is None
    assert source._subscriptions == {}


@pytest.mark.asyncio
async def test_close_logs_http_disconnect_failure(source, caplog):
    http_provider = _Provider(error=RuntimeError("session already gone"))
    source._http = SimpleNamespace(provider=http_provider)

    with caplog.at_level(logging.WARNING, logger="yibi_indexer.chain.web3_source"):
        await source.close()

    assert http_provider.disconnected is True
    assert "HTTP provider disconnect failed" in caplog.text
