"""Tests for yibi_indexer.config loading, overrides and diagnostics."""

import configparser

import pytest

from yibi_indexer import config as config_module
from yibi_indexer.config import (
    DEFAULT_BATCH_SIZE,
    IndexerConfig,
    _apply_env_overrides,
    _load_from_ini,
    _normalize,
    get_config_status,
    load_config,
    mask_url,
    print_config_summary,
    use_test_database,
)


@pytest.fixture(autouse=True)
def _clear_indexer_env(monkeypatch):
    for name in (
        "YIBI_RPC_URL",
        "YIBI_WS_URL",
        "YIBI_CONTRACT_ADDRESS",
        "YIBI_ABI_PATH",
        "YIBI_START_BLOCK",
        "YIBI_BLOCK_BATCH_SIZE",
        "YIBI_BATCH_DELAY_SECONDS",
        "YIBI_DB_PATH",
        "YIBI_HOST",
        "YIBI_PORT",
        "YIBI_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults():
    cfg = IndexerConfig()

    assert cfg.chain.rpc_url == "http://127.0.0.1:8545"
    assert cfg.chain.realtime_enabled is False
    assert cfg.sync.batch_size == 10
    assert cfg.sync.batch_delay_seconds == 0.2
    assert cfg.sync.backfill_enabled is False
    assert cfg.server.port == 3001
    assert cfg.database.path == "data/indexer.db"


@pytest.mark.unit
def test_env_overrides(monkeypatch):
    monkeypatch.setenv("YIBI_WS_URL", "wss://node.example.org/ws/key")
    monkeypatch.setenv("YIBI_CONTRACT_ADDRESS", "0xabc")
    monkeypatch.setenv("YIBI_START_BLOCK", "1200")
    monkeypatch.setenv("YIBI_BLOCK_BATCH_SIZE", "50")
    monkeypatch.setenv("YIBI_BATCH_DELAY_SECONDS", "1.5")
    monkeypatch.setenv("YIBI_PORT", "8080")
    monkeypatch.setenv("YIBI_LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.chain.realtime_enabled is True
    assert cfg.chain.contract_address == "0xabc"
    assert cfg.sync.start_block == 1200
    assert cfg.sync.backfill_enabled is True
    assert cfg.sync.batch_size == 50
    assert cfg.sync.batch_delay_seconds == 1.5
    assert cfg.server.port == 8080
    assert cfg.logging.level == "DEBUG"


@pytest.mark.unit
def test_ini_sections_load():
    parser = configparser.ConfigParser()
    parser.read_dict(
        {
            "chain": {"rpc_url": " http://rpc:8545 ", "abi_path": "abi/YiBi.json"},
            "sync": {"start_block": "300", "batch_size": "25", "batch_delay_seconds": "0"},
            "server": {"host": "127.0.0.1", "port": "4000"},
            "database": {"path": "/var/lib/yibi/indexer.db"},
            "logging": {"level": "warning", "format": "JSON"},
        }
    )

    cfg = IndexerConfig()
    _load_from_ini(parser, cfg)

    assert cfg.chain.rpc_url == "http://rpc:8545"
    assert cfg.chain.abi_path == "abi/YiBi.json"
    assert (cfg.sync.start_block, cfg.sync.batch_size) == (300, 25)
    assert cfg.sync.batch_delay_seconds == 0.0
    assert (cfg.server.host, cfg.server.port) == ("127.0.0.1", 4000)
    assert str(cfg.database.absolute_path) == "/var/lib/yibi/indexer.db"
    assert cfg.logging.level == "WARNING"
    assert cfg.logging.format == "json"


@pytest.mark.unit
def test_malformed_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("YIBI_START_BLOCK", "soon")
    monkeypatch.setenv("YIBI_BLOCK_BATCH_SIZE", "lots")

    cfg = IndexerConfig()
    _apply_env_overrides(cfg)

    assert cfg.sync.start_block == 0
    assert cfg.sync.batch_size == DEFAULT_BATCH_SIZE


@pytest.mark.unit
def test_normalize_clamps_batch_settings():
    cfg = IndexerConfig()
    cfg.sync.batch_size = 0
    cfg.sync.batch_delay_seconds = -1.0

    _normalize(cfg)

    assert cfg.sync.batch_size == DEFAULT_BATCH_SIZE
    assert cfg.sync.batch_delay_seconds == 0.0


@pytest.mark.unit
def test_mask_url():
    assert mask_url("") == "none"
    assert mask_url("ws://short") == "ws://short"
    assert mask_url("wss://node.example.org/ws/secret") == "wss://node.example.o..."


@pytest.mark.unit
def test_use_test_database_restores_path(tmp_path):
    original = config_module.config.database.path

    with use_test_database(tmp_path / "x.db") as path:
        assert config_module.config.database.absolute_path == path

    assert config_module.config.database.path == original


@pytest.mark.unit
def test_config_status_and_summary(capsys):
    status = get_config_status()
    print_config_summary()

    assert set(status) >= {"config_file_path", "backfill_enabled", "realtime_enabled"}
    assert "INDEXER CONFIGURATION" in capsys.readouterr().out
