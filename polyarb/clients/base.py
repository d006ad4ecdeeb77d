"""
Exchange client interface shared by the real and mock implementations.
"""

from abc import ABC, abstractmethod

from ..models import Market, PriceQuote


class ExchangeClient(ABC):
    """Read-only market data source."""

    async def initialize(self) -> None:
        """Open connections. Safe to call more than once."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def get_markets(self, limit: int = 100, offset: int = 0) -> list[Market]:
        ...

    @abstractmethod
    async def get_market(self, market_id: str) -> Market:
        """Raises MarketNotFoundError for unknown IDs."""

    @abstractmethod
    async def get_market_prices(self, market_id: str) -> list[PriceQuote]:
        ...

    @abstractmethod
    async def get_trending_markets(self, limit: int = 20) -> list[Market]:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Never raises."""
