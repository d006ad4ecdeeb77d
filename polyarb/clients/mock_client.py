"""
Mock exchange client for development and tests.
Serves a fixed set of markets with randomized prices around 0.5.
"""

import random
from datetime import datetime, timezone
from typing import Optional

from ..exceptions import MarketNotFoundError
from ..models import Market, PriceQuote, utc_now
from ..utils.logger import get_logger
from .base import ExchangeClient

logger = get_logger("mock_client")

SPREAD = 0.02


def default_markets() -> list[Market]:
    return [
        Market(
            market_id="mock-market-1",
            question="Will Bitcoin reach $100,000 by end of 2025?",
            description="Resolves Yes if the Bitcoin price reaches $100,000 USD.",
            end_date=datetime(2025, 12, 31, tzinfo=timezone.utc),
            outcomes=["Yes", "No"],
            volume=150000,
            liquidity=50000,
        ),
        Market(
            market_id="mock-market-2",
            question="Will Ethereum 2.0 launch successfully in Q1 2025?",
            description="Resolves based on the official Ethereum Foundation announcement.",
            end_date=datetime(2025, 3, 31, tzinfo=timezone.utc),
            outcomes=["Yes", "No"],
            volume=80000,
            liquidity=30000,
        ),
        Market(
            market_id="mock-market-3",
            question="US Presidential Election 2024",
            description="Who will win the 2024 US Presidential Election?",
            end_date=datetime(2024, 11, 5, tzinfo=timezone.utc),
            outcomes=["Republican", "Democrat", "Other"],
            volume=500000,
            liquidity=200000,
        ),
    ]


class MockPolymarketClient(ExchangeClient):
    """
    In-memory exchange.

    Prices are drawn from 0.5 +/- 10% with a 2% spread. Tests can pin quotes
    for a market with `set_prices`.
    """

    def __init__(self, markets: Optional[list[Market]] = None, seed: Optional[int] = None):
        self._markets = markets if markets is not None else default_markets()
        self._overrides: dict[str, list[PriceQuote]] = {}
        self._rng = random.Random(seed)
        logger.info("Mock client initialized", extra={"markets": len(self._markets)})

    def set_markets(self, markets: list[Market]) -> None:
        self._markets = list(markets)

    def set_prices(self, market_id: str, prices: list[PriceQuote]) -> None:
        self._overrides[market_id] = list(prices)

    async def get_markets(self, limit: int = 100, offset: int = 0) -> list[Market]:
        logger.debug(f"Mock: fetching markets (limit={limit}, offset={offset})")
        return self._markets[offset:offset + limit]

    async def get_market(self, market_id: str) -> Market:
        for market in self._markets:
            if market.market_id == market_id:
                return market
        raise MarketNotFoundError(market_id)

    async def get_market_prices(self, market_id: str) -> list[PriceQuote]:
        market = await self.get_market(market_id)

        if market_id in self._overrides:
            return list(self._overrides[market_id])

        now = utc_now()
        prices = []
        for outcome in market.outcomes:
            variance = (self._rng.random() - 0.5) * 0.2
            last_price = max(0.1, min(0.9, 0.5 + variance))
            prices.append(PriceQuote(
                market_id=market_id,
                outcome=outcome,
                bid_price=max(0.01, last_price - SPREAD / 2),
                ask_price=min(0.99, last_price + SPREAD / 2),
                last_price=last_price,
                observed_at=now,
            ))
        return prices

    async def get_trending_markets(self, limit: int = 20) -> list[Market]:
        return sorted(self._markets, key=lambda m: m.volume, reverse=True)[:limit]

    async def health_check(self) -> bool:
        return True
