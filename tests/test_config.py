"""
Tests for configuration loading and validation.
"""

import pytest
from eth_account import Account

from polyarb.config import load_config, validate_config
from polyarb.exceptions import ConfigurationError

ENV_VARS = [
    "POLYMARKET_API_URL", "POLYMARKET_GAMMA_URL", "POLYMARKET_CHAIN_ID", "USE_MOCK_API",
    "PRIVATE_KEY", "WALLET_ADDRESS",
    "MIN_PROFIT_THRESHOLD", "MAX_POSITION_SIZE", "MAX_TOTAL_EXPOSURE", "TRADING_ENABLED",
    "DEFAULT_POSITION_SIZE", "MAX_PENDING_TRADES", "MAX_RETRIES",
    "MAX_SLIPPAGE", "MIN_CONFIDENCE",
    "POLL_INTERVAL_MS", "MARKET_LIMIT", "MIN_LIQUIDITY", "PRICE_SPIKE_THRESHOLD",
    "HISTORY_LENGTH", "OPPORTUNITY_TTL_SECONDS",
    "LOG_LEVEL", "JSON_LOGGING", "SERVER_ENABLED", "HOST", "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:

    def test_defaults(self):
        config = load_config()

        assert config.exchange.use_mock is True
        assert config.exchange.chain_id == 137
        assert config.trading.enabled is False
        assert config.trading.min_profit_threshold == 0.02
        assert config.trading.max_position_size == 100
        assert config.trading.max_total_exposure == 1000
        assert config.trading.max_retries == 3
        assert config.risk.max_slippage == 0.01
        assert config.risk.min_confidence == 0.6
        assert config.monitoring.poll_interval_ms == 5000
        assert config.monitoring.poll_interval_seconds == 5.0
        assert config.monitoring.market_limit == 50
        assert config.server.port == 3000
        validate_config(config)

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("USE_MOCK_API", "false")
        monkeypatch.setenv("MIN_PROFIT_THRESHOLD", "0.05")
        monkeypatch.setenv("POLL_INTERVAL_MS", "250")
        monkeypatch.setenv("JSON_LOGGING", "1")
        monkeypatch.setenv("PORT", "8080")

        config = load_config()

        assert config.exchange.use_mock is False
        assert config.trading.min_profit_threshold == 0.05
        assert config.monitoring.poll_interval_seconds == 0.25
        assert config.logging.json_logging is True
        assert config.server.port == 8080

    def test_non_numeric_value(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRIES", "three")
        with pytest.raises(ConfigurationError, match="MAX_RETRIES"):
            load_config()


class TestValidateConfig:

    def test_trading_requires_private_key(self, monkeypatch):
        monkeypatch.setenv("TRADING_ENABLED", "true")
        with pytest.raises(ConfigurationError, match="Private key"):
            validate_config(load_config())

    def test_invalid_private_key(self, monkeypatch):
        monkeypatch.setenv("TRADING_ENABLED", "true")
        monkeypatch.setenv("PRIVATE_KEY", "not-a-key")
        with pytest.raises(ConfigurationError, match="PRIVATE_KEY"):
            validate_config(load_config())

    def test_valid_private_key(self, monkeypatch):
        account = Account.create()
        monkeypatch.setenv("TRADING_ENABLED", "true")
        monkeypatch.setenv("PRIVATE_KEY", account.key.hex())
        monkeypatch.setenv("WALLET_ADDRESS", account.address)

        validate_config(load_config())

    def test_wallet_address_mismatch(self, monkeypatch):
        monkeypatch.setenv("TRADING_ENABLED", "true")
        monkeypatch.setenv("PRIVATE_KEY", Account.create().key.hex())
        monkeypatch.setenv("WALLET_ADDRESS", Account.create().address)

        with pytest.raises(ConfigurationError, match="does not match"):
            validate_config(load_config())

    def test_key_ignored_when_trading_disabled(self, monkeypatch):
        monkeypatch.setenv("PRIVATE_KEY", "not-a-key")
        validate_config(load_config())

    @pytest.mark.parametrize("name,value", [
        ("MIN_PROFIT_THRESHOLD", "1.5"),
        ("MAX_SLIPPAGE", "-0.1"),
        ("MIN_CONFIDENCE", "2"),
        ("MAX_POSITION_SIZE", "0"),
        ("POLL_INTERVAL_MS", "-5"),
        ("MAX_RETRIES", "-1"),
    ])
    def test_out_of_range(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError, match=name):
            validate_config(load_config())
