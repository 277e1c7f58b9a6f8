"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BLOCK_LIMIT = 20_000  # blocks per eth_getLogs for most public providers


class RPCSettings(BaseSettings):
    """JSON-RPC endpoint connection settings."""

    model_config = SettingsConfigDict(env_prefix="PERPSCAN_RPC_")

    url: str = ""
    timeout_s: float = 20.0
    max_connections: int = 64
    http2: bool = True


class CoreSettings(BaseSettings):
    """Core system contract (address and deployment block)."""

    model_config = SettingsConfigDict(env_prefix="PERPSCAN_CORE_")

    address: str = ""
    first_block: int = 0


class SpotMarketSettings(BaseSettings):
    """Spot market contract (address and deployment block)."""

    model_config = SettingsConfigDict(env_prefix="PERPSCAN_SPOT_MARKET_")

    address: str = ""
    first_block: int = 0


class PerpsMarketSettings(BaseSettings):
    """Perps market contract (address and deployment block)."""

    model_config = SettingsConfigDict(env_prefix="PERPSCAN_PERPS_MARKET_")

    address: str = ""
    first_block: int = 0


class PaginationSettings(BaseSettings):
    """Block-range pagination defaults.

    block_limit is the chunk size used by the *_limit operations when the
    caller passes no explicit limit; 0 means DEFAULT_BLOCK_LIMIT.
    concurrency > 1 fetches chunks in parallel; results keep block order.
    """

    model_config = SettingsConfigDict(env_prefix="PERPSCAN_PAGINATION_")

    block_limit: int = DEFAULT_BLOCK_LIMIT
    concurrency: int = 1


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_prefix="PERPSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    rpc: RPCSettings = RPCSettings()
    core: CoreSettings = CoreSettings()
    spot_market: SpotMarketSettings = SpotMarketSettings()
    perps_market: PerpsMarketSettings = PerpsMarketSettings()
    pagination: PaginationSettings = PaginationSettings()
