# Exchange clients
from .base import ExchangeClient
from .mock_client import MockPolymarketClient
from .polymarket_client import PolymarketClient

__all__ = ["ExchangeClient", "MockPolymarketClient", "PolymarketClient", "create_exchange_client"]


def create_exchange_client(config) -> ExchangeClient:
    """Build the mock or real client selected by configuration."""
    exchange = config.exchange
    if exchange.use_mock:
        return MockPolymarketClient()
    return PolymarketClient(
        clob_url=exchange.clob_url,
        gamma_url=exchange.gamma_url,
        timeout_seconds=exchange.request_timeout_seconds
    )
