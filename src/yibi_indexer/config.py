"""
Indexer configuration management.

Configuration is loaded from multiple sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/indexer.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The
IndexerConfig dataclass provides typed access to all settings.

Usage:
    from yibi_indexer.config import config

    print(config.chain.rpc_url)
    print(config.sync.batch_size)

Environment Variable Mapping:
    YIBI_RPC_URL              -> chain.rpc_url
    YIBI_WS_URL               -> chain.ws_url
    YIBI_CONTRACT_ADDRESS     -> chain.contract_address
    YIBI_ABI_PATH             -> chain.abi_path
    YIBI_START_BLOCK          -> sync.start_block
    YIBI_BLOCK_BATCH_SIZE     -> sync.batch_size
    YIBI_BATCH_DELAY_SECONDS  -> sync.batch_delay_seconds
    YIBI_DB_PATH              -> database.path
    YIBI_HOST                 -> server.host
    YIBI_PORT                 -> server.port
    YIBI_LOG_LEVEL            -> logging.level
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/, data/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "indexer.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "indexer.example.ini"

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY_SECONDS = 0.2


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ChainSettings:
    """Ledger endpoints and contract binding."""

    rpc_url: str = "http://127.0.0.1:8545"
    ws_url: str = ""  # empty = realtime subscription disabled
    contract_address: str = ""
    abi_path: str = ""  # empty = built-in ABI

    @property
    def realtime_enabled(self) -> bool:
        return bool(self.ws_url)


@dataclass
class SyncSettings:
    """Historical backfill configuration."""

    start_block: int = 0  # <= 0 = skip backfill
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS

    @property
    def backfill_enabled(self) -> bool:
        return self.start_block > 0


@dataclass
class ServerSettings:
    """Status HTTP surface configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 3001


@dataclass
class DatabaseSettings:
    """Database configuration."""

    path: str = "data/indexer.db"

    @property
    def absolute_path(self) -> Path:
        """Get absolute path to database file."""
        p = Path(self.path)
        if p.is_absolute():
            return p
        return PROJECT_ROOT / p


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class IndexerConfig:
    """
    Complete indexer configuration.

    Aggregates all settings sections. Access via the module-level `config`
    singleton.
    """

    chain: ChainSettings = field(default_factory=ChainSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_int(value: str, default: int) -> int:
    """Parse an integer, returning ``default`` for blank or malformed input."""
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return default


def _parse_float(value: str, default: float) -> float:
    """Parse a float, returning ``default`` for blank or malformed input."""
    try:
        return float(value.strip())
    except (AttributeError, ValueError):
        return default


def _normalize(cfg: IndexerConfig) -> None:
    """Clamp values that would make the backfill loop meaningless."""
    if cfg.sync.batch_size <= 0:
        cfg.sync.batch_size = DEFAULT_BATCH_SIZE
    if cfg.sync.batch_delay_seconds < 0:
        cfg.sync.batch_delay_seconds = 0.0


def _load_from_ini(parser: configparser.ConfigParser, cfg: IndexerConfig) -> None:
    """Load configuration from parsed INI file into IndexerConfig."""
    # Chain section
    if parser.has_section("chain"):
        for key in ("rpc_url", "ws_url", "contract_address", "abi_path"):
            if parser.has_option("chain", key):
                setattr(cfg.chain, key, parser.get("chain", key).strip())

    # Sync section
    if parser.has_section("sync"):
        if parser.has_option("sync", "start_block"):
            cfg.sync.start_block = _parse_int(parser.get("sync", "start_block"), 0)
        if parser.has_option("sync", "batch_size"):
            cfg.sync.batch_size = _parse_int(
                parser.get("sync", "batch_size"), DEFAULT_BATCH_SIZE
            )
        if parser.has_option("sync", "batch_delay_seconds"):
            cfg.sync.batch_delay_seconds = _parse_float(
                parser.get("sync", "batch_delay_seconds"), DEFAULT_BATCH_DELAY_SECONDS
            )

    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Database section
    if parser.has_section("database"):
        if parser.has_option("database", "path"):
            cfg.database.path = parser.get("database", "path")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]


def _apply_env_overrides(cfg: IndexerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Chain settings
    if env_rpc := os.getenv("YIBI_RPC_URL"):
        cfg.chain.rpc_url = env_rpc
    if env_ws := os.getenv("YIBI_WS_URL"):
        cfg.chain.ws_url = env_ws
    if env_address := os.getenv("YIBI_CONTRACT_ADDRESS"):
        cfg.chain.contract_address = env_address
    if env_abi := os.getenv("YIBI_ABI_PATH"):
        cfg.chain.abi_path = env_abi

    # Sync settings
    if env_start := os.getenv("YIBI_START_BLOCK"):
        cfg.sync.start_block = _parse_int(env_start, 0)
    if env_batch := os.getenv("YIBI_BLOCK_BATCH_SIZE"):
        cfg.sync.batch_size = _parse_int(env_batch, DEFAULT_BATCH_SIZE)
    if env_delay := os.getenv("YIBI_BATCH_DELAY_SECONDS"):
        cfg.sync.batch_delay_seconds = _parse_float(env_delay, DEFAULT_BATCH_DELAY_SECONDS)

    # Server settings
    if env_host := os.getenv("YIBI_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("YIBI_PORT"):
        cfg.server.port = int(env_port)

    # Database settings
    if env_db := os.getenv("YIBI_DB_PATH"):
        cfg.database.path = env_db

    # Logging settings
    if env_log := os.getenv("YIBI_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()


def load_config() -> IndexerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. config/indexer.ini
        3. config/indexer.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        IndexerConfig: Fully populated configuration object.
    """
    cfg = IndexerConfig()

    config_file = None
    if CONFIG_FILE.exists():
        config_file = CONFIG_FILE
    elif CONFIG_EXAMPLE.exists():
        config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)
    _normalize(cfg)

    return cfg


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def mask_url(url: str) -> str:
    """Truncate an endpoint URL so API keys embedded in paths are not echoed."""
    if not url:
        return "none"
    return url[:20] + "..." if len(url) > 20 else url


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information, useful for
    debugging and for :func:`print_config_summary` (the ``config`` CLI command).
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "contract_address": config.chain.contract_address or None,
        "ws_url": mask_url(config.chain.ws_url),
        "backfill_enabled": config.sync.backfill_enabled,
        "realtime_enabled": config.chain.realtime_enabled,
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    print("\n" + "=" * 60)
    print("INDEXER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to indexer.ini for production)")
    print("-" * 60)
    print(f"RPC URL:     {mask_url(config.chain.rpc_url)}")
    print(f"WS URL:      {status['ws_url']}")
    print(f"Contract:    {status['contract_address']}")
    backfill_state = "on" if status["backfill_enabled"] else "off"
    print(f"Start block: {config.sync.start_block} (backfill {backfill_state})")
    print(f"Batch size:  {config.sync.batch_size}")
    print(f"Database:    {config.database.absolute_path}")
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")


# =============================================================================
# TEST HELPERS
# =============================================================================


class use_test_database:
    """
    Context manager for using a temporary test database.

    Usage:
        from yibi_indexer.config import use_test_database

        def test_something(tmp_path):
            with use_test_database(tmp_path / "test.db"):
                schema.init_database()

    Args:
        db_path: Path to the test database file
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.original_path: str | None = None

    def __enter__(self) -> Path:
        """Set up test database path."""
        self.original_path = config.database.path
        config.database.path = str(self.db_path)
        return self.db_path

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Restore original database path."""
        if self.original_path is not None:
            config.database.path = self.original_path
        return None
