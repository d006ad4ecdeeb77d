"""
Per-market price state with rolling history.
Computes spread and volatility statistics from the retained snapshots.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import numpy as np

from ..models import Market, PriceQuote, utc_now
from ..utils.logger import get_logger

logger = get_logger("state_tracker")


@dataclass
class MarketState:
    """Everything known about one market."""
    market: Market
    prices: list[PriceQuote]
    price_history: deque[list[PriceQuote]]
    last_update: datetime
    update_count: int
    average_spread: float
    volatility: float

    def get_quote(self, outcome: str) -> Optional[PriceQuote]:
        for quote in self.prices:
            if quote.outcome == outcome:
                return quote
        return None


class MarketStateTracker:
    """
    Tracks every observed market and its recent price snapshots.

    History is a bounded FIFO per market. Volatility is the standard deviation
    of all retained last prices, with every outcome flattened into a single
    sample.

    Methods never await, so each call is atomic on the event loop and
    concurrent per-market tasks cannot interleave their writes.
    """

    def __init__(self, max_history_length: int = 100):
        """
        Args:
            max_history_length: Snapshots kept per market (100 x 5s ~ 8 minutes)
        """
        if max_history_length < 1:
            raise ValueError("max_history_length must be at least 1")
        self.max_history_length = max_history_length
        self._states: dict[str, MarketState] = {}

    def update_market(self, market: Market, prices: list[PriceQuote]) -> MarketState:
        """
        Create or update the state for a market.

        Args:
            market: Latest market metadata
            prices: Latest quotes for all outcomes

        Returns:
            The updated state
        """
        prices = list(prices)
        existing = self._states.get(market.market_id)

        if existing is None:
            state = MarketState(
                market=market,
                prices=prices,
                price_history=deque([prices], maxlen=self.max_history_length),
                last_update=utc_now(),
                update_count=1,
                average_spread=self._calculate_average_spread(prices),
                volatility=0.0,
            )
            self._states[market.market_id] = state
            logger.info(
                "Started tracking market",
                extra={"market_id": market.market_id, "question": market.question[:80]}
            )
            return state

        # deque(maxlen) drops the oldest snapshot on overflow
        existing.price_history.append(prices)
        existing.market = market
        existing.prices = prices
        existing.last_update = utc_now()
        existing.update_count += 1
        existing.average_spread = self._calculate_average_spread(prices)
        existing.volatility = self._calculate_volatility(existing.price_history)
        return existing

    def get_state(self, market_id: str) -> Optional[MarketState]:
        return self._states.get(market_id)

    def get_all_states(self) -> list[MarketState]:
        return list(self._states.values())

    def remove_market(self, market_id: str) -> bool:
        """
        Stop tracking a market.

        Returns:
            True if the market was tracked, False otherwise
        """
        return self._states.pop(market_id, None) is not None

    def _previous_and_current(
        self,
        market_id: str,
        outcome: str
    ) -> Optional[tuple[PriceQuote, PriceQuote]]:
        state = self._states.get(market_id)
        if state is None or len(state.price_history) < 2:
            return None

        current = _find_outcome(state.price_history[-1], outcome)
        previous = _find_outcome(state.price_history[-2], outcome)
        if current is None or previous is None:
            return None
        return previous, current

    def get_price_change(self, market_id: str, outcome: str) -> Optional[float]:
        """
        Absolute last-price change between the two most recent snapshots.

        Returns:
            Change (may be negative), or None without two snapshots
        """
        pair = self._previous_and_current(market_id, outcome)
        if pair is None:
            return None
        previous, current = pair
        return current.last_price - previous.last_price

    def get_price_change_percentage(self, market_id: str, outcome: str) -> Optional[float]:
        """
        Percentage last-price change, e.g. 10.0 for 0.50 -> 0.55.

        Returns:
            Percentage, or None without two snapshots or when the previous
            price is zero
        """
        pair = self._previous_and_current(market_id, outcome)
        if pair is None:
            return None
        previous, current = pair
        if previous.last_price == 0:
            return None
        return (current.last_price - previous.last_price) / previous.last_price * 100

    def get_top_volatile_markets(self, limit: int = 10) -> list[MarketState]:
        """Markets sorted by volatility, most volatile first."""
        ranked = sorted(self._states.values(), key=lambda s: s.volatility, reverse=True)
        return ranked[:limit]

    def get_markets_by_liquidity(self, min_liquidity: float) -> list[MarketState]:
        """Markets with at least `min_liquidity` USDC of liquidity."""
        return [s for s in self._states.values() if s.market.liquidity >= min_liquidity]

    def clear(self) -> None:
        self._states.clear()
        logger.info("Cleared all market states")

    def __len__(self) -> int:
        return len(self._states)

    @staticmethod
    def _calculate_average_spread(prices: list[PriceQuote]) -> float:
        if not prices:
            return 0.0
        return float(np.mean([p.ask_price - p.bid_price for p in prices]))

    @staticmethod
    def _calculate_volatility(price_history: deque[list[PriceQuote]]) -> float:
        if len(price_history) < 2:
            return 0.0
        all_prices = [quote.last_price for snapshot in price_history for quote in snapshot]
        if not all_prices:
            return 0.0
        # Population standard deviation (ddof=0)
        return float(np.std(all_prices))


def _find_outcome(snapshot: list[PriceQuote], outcome: str) -> Optional[PriceQuote]:
    for quote in snapshot:
        if quote.outcome == outcome:
            return quote
    return None
