"""
Configuration module for the arbitrage monitor.
Loads settings from environment variables with validation.
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv
from eth_account import Account

from .exceptions import ConfigurationError

# Load .env file if present
load_dotenv()


@dataclass
class ExchangeConfig:
    """Exchange API configuration."""
    clob_url: str = "https://clob.polymarket.com"
    gamma_url: str = "https://gamma-api.polymarket.com"
    chain_id: int = 137
    use_mock: bool = True
    request_timeout_seconds: float = 10.0


@dataclass
class WalletConfig:
    """Signing credential. Only required when trading is enabled."""
    private_key: str = ""
    wallet_address: str = ""


@dataclass
class TradingConfig:
    """Trading parameters and thresholds."""
    min_profit_threshold: float = 0.02  # Fraction, 0.02 = 2%
    max_position_size: float = 100.0  # Max USDC per opportunity
    max_total_exposure: float = 1000.0
    enabled: bool = False  # Dry run unless explicitly enabled
    default_position_size: float = 10.0
    max_pending_trades: int = 10
    max_retries: int = 3
    retry_delay_seconds: float = 0.5


@dataclass
class RiskConfig:
    """Opportunity filter settings."""
    max_slippage: float = 0.01
    min_confidence: float = 0.6


@dataclass
class MonitoringConfig:
    """Polling and state tracking settings."""
    poll_interval_ms: int = 5000
    market_limit: int = 50
    min_liquidity: float = 1000.0
    price_spike_threshold: float = 0.05
    history_length: int = 100
    opportunity_ttl_seconds: float = 60.0
    stats_interval_seconds: float = 60.0

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000


@dataclass
class LogConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    json_logging: bool = False


@dataclass
class ServerConfig:
    """Status HTTP server."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class Config:
    """Main configuration container."""
    exchange: ExchangeConfig
    wallet: WalletConfig
    trading: TradingConfig
    risk: RiskConfig
    monitoring: MonitoringConfig
    logging: LogConfig
    server: ServerConfig


def get_env(key: str, default: Optional[str] = None, required: bool = True) -> str:
    """Get environment variable with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {key} is not set")
    return value or ""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes")


def get_env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    value = os.getenv(key, str(default))
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from None


def get_env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    value = os.getenv(key, str(default))
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from None


def load_config() -> Config:
    """Load configuration from environment. Does not validate."""
    return Config(
        exchange=ExchangeConfig(
            clob_url=get_env("POLYMARKET_API_URL", "https://clob.polymarket.com", required=False),
            gamma_url=get_env("POLYMARKET_GAMMA_URL", "https://gamma-api.polymarket.com", required=False),
            chain_id=get_env_int("POLYMARKET_CHAIN_ID", 137),
            use_mock=get_env_bool("USE_MOCK_API", True),
        ),
        wallet=WalletConfig(
            private_key=get_env("PRIVATE_KEY", "", required=False),
            wallet_address=get_env("WALLET_ADDRESS", "", required=False),
        ),
        trading=TradingConfig(
            min_profit_threshold=get_env_float("MIN_PROFIT_THRESHOLD", 0.02),
            max_position_size=get_env_float("MAX_POSITION_SIZE", 100),
            max_total_exposure=get_env_float("MAX_TOTAL_EXPOSURE", 1000),
            enabled=get_env_bool("TRADING_ENABLED", False),
            default_position_size=get_env_float("DEFAULT_POSITION_SIZE", 10),
            max_pending_trades=get_env_int("MAX_PENDING_TRADES", 10),
            max_retries=get_env_int("MAX_RETRIES", 3),
        ),
        risk=RiskConfig(
            max_slippage=get_env_float("MAX_SLIPPAGE", 0.01),
            min_confidence=get_env_float("MIN_CONFIDENCE", 0.6),
        ),
        monitoring=MonitoringConfig(
            poll_interval_ms=get_env_int("POLL_INTERVAL_MS", 5000),
            market_limit=get_env_int("MARKET_LIMIT", 50),
            min_liquidity=get_env_float("MIN_LIQUIDITY", 1000),
            price_spike_threshold=get_env_float("PRICE_SPIKE_THRESHOLD", 0.05),
            history_length=get_env_int("HISTORY_LENGTH", 100),
            opportunity_ttl_seconds=get_env_float("OPPORTUNITY_TTL_SECONDS", 60),
        ),
        logging=LogConfig(
            log_level=get_env("LOG_LEVEL", "INFO", required=False),
            json_logging=get_env_bool("JSON_LOGGING", False),
        ),
        server=ServerConfig(
            enabled=get_env_bool("SERVER_ENABLED", True),
            host=get_env("HOST", "0.0.0.0", required=False),
            port=get_env_int("PORT", 3000),
        ),
    )


def validate_config(config: Config) -> None:
    """
    Validate configuration before anything starts.

    Raises:
        ConfigurationError: Trading enabled without a usable signing key,
            or a numeric setting outside its allowed range.
    """
    trading = config.trading

    if trading.enabled:
        if not config.wallet.private_key:
            raise ConfigurationError(
                "Private key not configured. Set TRADING_ENABLED=false or add PRIVATE_KEY"
            )
        try:
            account = Account.from_key(config.wallet.private_key)
        except Exception as e:
            raise ConfigurationError(f"PRIVATE_KEY is not a valid key: {e}") from None

        address = config.wallet.wallet_address
        if address and address.lower() != account.address.lower():
            raise ConfigurationError(
                f"WALLET_ADDRESS {address} does not match PRIVATE_KEY ({account.address})"
            )

    for name, value in (
        ("MIN_PROFIT_THRESHOLD", trading.min_profit_threshold),
        ("MAX_SLIPPAGE", config.risk.max_slippage),
        ("MIN_CONFIDENCE", config.risk.min_confidence),
    ):
        if not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{name} must be between 0 and 1, got {value}")

    for name, value in (
        ("MAX_POSITION_SIZE", trading.max_position_size),
        ("MAX_TOTAL_EXPOSURE", trading.max_total_exposure),
        ("DEFAULT_POSITION_SIZE", trading.default_position_size),
        ("MAX_PENDING_TRADES", trading.max_pending_trades),
        ("POLL_INTERVAL_MS", config.monitoring.poll_interval_ms),
        ("HISTORY_LENGTH", config.monitoring.history_length),
    ):
        if value <= 0:
            raise ConfigurationError(f"{name} must be positive, got {value}")

    if trading.max_retries < 0:
        raise ConfigurationError(f"MAX_RETRIES must not be negative, got {trading.max_retries}")
