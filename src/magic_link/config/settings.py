"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``MAGICLINK_``, nested via ``__``)
2. YAML config file (``MAGICLINK_CONFIG_PATH`` env var)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class ExecutionMode(enum.StrEnum):
    """How a funds transfer is actually carried out."""

    SIMULATED = "simulated"
    LIVE_TESTNET = "live-testnet"
    LIVE_SANDBOX = "live-sandbox"

    @classmethod
    def parse(cls, value: object) -> ExecutionMode | None:
        """Parse a mode name, accepting the legacy switch aliases.

        ``simulation``/``demo``/``off``/``true`` select simulation,
        ``testnet``/``live``/``on``/``false`` select the testnet, and
        ``sandbox`` selects the local sandbox.  Booleans follow the
        ``demo`` switch semantics.  Returns None for anything else.
        """
        if isinstance(value, bool):
            return cls.SIMULATED if value else cls.LIVE_TESTNET
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        try:
            return cls(lowered)
        except ValueError:
            pass
        aliases = {
            "simulation": cls.SIMULATED,
            "demo": cls.SIMULATED,
            "off": cls.SIMULATED,
            "true": cls.SIMULATED,
            "testnet": cls.LIVE_TESTNET,
            "live": cls.LIVE_TESTNET,
            "on": cls.LIVE_TESTNET,
            "false": cls.LIVE_TESTNET,
            "sandbox": cls.LIVE_SANDBOX,
        }
        return aliases.get(lowered)


class CacheEngine(enum.StrEnum):
    """Supported cache backends (rate-limit counters)."""

    MEMORY = "memory"
    REDIS = "redis"


class NotifierEngine(enum.StrEnum):
    """Supported recipient notification channels."""

    LOG = "log"
    WEBHOOK = "webhook"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_SERVER__",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3003
    log_level: str = "info"


class StoreConfig(BaseSettings):
    """Durable record store settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_STORE__",
        case_sensitive=False,
    )

    data_dir: str = Field(
        default="./data",
        description="Directory holding the JSON documents",
    )
    fallback_to_temp: bool = True
    fallback_to_memory: bool = True


class ClaimConfig(BaseSettings):
    """Magic-link claim settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_CLAIMS__",
        case_sensitive=False,
    )

    base_url: str = "http://localhost:3000"
    ttl_seconds: int = Field(default=7 * 24 * 60 * 60, gt=0)
    max_message_length: int = 280
    max_sender_name_length: int = 80


class MoverConfig(BaseSettings):
    """Funds mover backend settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_MOVER__",
        case_sensitive=False,
    )

    mode: ExecutionMode = ExecutionMode.SIMULATED
    timeout_seconds: float = Field(default=30.0, gt=0)
    treasury_credential: str = ""
    simulated_delay: float = 0.0

    # live-testnet gateway
    gateway_url: str = "https://payments-testnet.example.com"
    gateway_token: str = ""
    explorer_url_template: str = "https://stellar.expert/explorer/testnet/tx/{transaction_id}"
    friendbot_url: str = "https://friendbot.stellar.org"
    prefund_wallets: bool = False

    # live-sandbox CLI
    sandbox_cli_path: str = "soroban"
    sandbox_identity: str = "default"
    sandbox_rpc_url: str = "http://localhost:8000/soroban/rpc"
    sandbox_network_passphrase: str = "Standalone Network ; February 2017"
    sandbox_asset_contracts: dict[str, str] = Field(default_factory=dict)

    @field_validator("mode", mode="before")
    @classmethod
    def _parse_mode(cls, v: Any) -> Any:
        parsed = ExecutionMode.parse(v)
        return parsed if parsed is not None else v


class AssetConfig(BaseSettings):
    """Issuers for the credit assets."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_ASSETS__",
        case_sensitive=False,
    )

    usdc_issuer: str = "GDUKMGUGDZQK6YH2V8YX1Z6KFLSDGQ7Y3TQF6A4O5QZVDGQFQ6VFS75Q"
    pyusd_issuer: str = "GDGU5OAPHNPU5UCLE5W7VJGSPB3C5GZ3H5CTM4D4DKRZ7L2ECYQKJJOB"


class NotifierConfig(BaseSettings):
    """Recipient notification settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_NOTIFIER__",
        case_sensitive=False,
    )

    engine: NotifierEngine = NotifierEngine.LOG
    webhook_url: str = ""
    webhook_token: str = ""
    timeout_seconds: float = 10.0


class CacheConfig(BaseSettings):
    """Cache settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_CACHE__",
        case_sensitive=False,
    )

    engine: CacheEngine = Field(
        default=CacheEngine.MEMORY,
        description="Cache backend: memory or redis",
    )
    url: str = "redis://localhost:6379/0"
    max_connections: int = 10
    key_prefix: str = "magiclink:"


class RateLimitConfig(BaseSettings):
    """Fixed-window rate limits per client and route bucket."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_RATE_LIMIT__",
        case_sensitive=False,
    )

    enabled: bool = True
    send_limit: int = 20
    send_window_ms: int = 60 * 1000
    verify_limit: int = 10
    verify_window_ms: int = 60 * 1000
    redeem_limit: int = 10
    redeem_window_ms: int = 60 * 1000
    forward_limit: int = 5
    forward_window_ms: int = 5 * 60 * 1000
    action_limit: int = 10
    action_window_ms: int = 10 * 60 * 1000


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


class TaskConfig(BaseSettings):
    """Background task settings."""

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_TASK__",
        case_sensitive=False,
    )

    enabled: bool = True
    sweep_period: float = 60.0
    metrics_period: float = 15.0


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``MAGICLINK_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAGICLINK_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    claims: ClaimConfig = Field(default_factory=ClaimConfig)
    mover: MoverConfig = Field(default_factory=MoverConfig)
    assets: AssetConfig = Field(default_factory=AssetConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    task: TaskConfig = Field(default_factory=TaskConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
