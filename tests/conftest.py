"""
Shared fixtures: quote, market and opportunity factories.
"""

from datetime import timedelta
import uuid

import pytest

from polyarb.models import (
    ArbitrageOpportunity,
    ArbitrageType,
    Market,
    PriceQuote,
    utc_now,
)


@pytest.fixture
def make_quote():
    """Factory for PriceQuote with sensible defaults."""
    def _make(outcome="Yes", bid=0.47, ask=0.48, last=None, market_id="market-1", observed_at=None):
        return PriceQuote(
            market_id=market_id,
            outcome=outcome,
            bid_price=bid,
            ask_price=ask,
            last_price=last if last is not None else (bid + ask) / 2,
            observed_at=observed_at or utc_now(),
        )
    return _make


@pytest.fixture
def make_market():
    """Factory for Market with sensible defaults."""
    def _make(market_id="market-1", outcomes=None, liquidity=50000.0, volume=100000.0, active=True):
        return Market(
            market_id=market_id,
            question=f"Question for {market_id}?",
            outcomes=outcomes or ["Yes", "No"],
            active=active,
            volume=volume,
            liquidity=liquidity,
        )
    return _make


@pytest.fixture
def binary_arb_quotes(make_quote):
    """Binary market whose asks sum to 0.98."""
    return [
        make_quote("Yes", bid=0.47, ask=0.48, last=0.475),
        make_quote("No", bid=0.49, ask=0.50, last=0.495),
    ]


@pytest.fixture
def make_opportunity(make_quote):
    """Factory for ArbitrageOpportunity of any type."""
    def _make(arb_type=ArbitrageType.COMPLEMENTARY, quotes=None, profit_percentage=0.0204,
              required_capital=0.98, market_id="market-1", expires_in=30.0):
        now = utc_now()
        if quotes is None:
            if arb_type == ArbitrageType.MISPRICING:
                quotes = [make_quote("Yes", bid=0.55, ask=0.50, market_id=market_id)]
            elif arb_type == ArbitrageType.TEMPORAL:
                quotes = [
                    make_quote("Yes", bid=0.53, ask=0.535, market_id=market_id),
                    make_quote("No", bid=0.52, ask=0.525, market_id=market_id),
                ]
            else:
                quotes = [
                    make_quote("Yes", bid=0.47, ask=0.48, market_id=market_id),
                    make_quote("No", bid=0.49, ask=0.50, market_id=market_id),
                ]

        if arb_type == ArbitrageType.MISPRICING:
            buy_outcome = sell_outcome = quotes[0].outcome
            buy_price, sell_price = quotes[0].ask_price, quotes[0].bid_price
        elif arb_type == ArbitrageType.TEMPORAL:
            buy_outcome, sell_outcome = "none", ",".join(q.outcome for q in quotes)
            buy_price, sell_price = 1.0, sum(q.bid_price for q in quotes)
        else:
            buy_outcome, sell_outcome = ",".join(q.outcome for q in quotes), "none"
            buy_price, sell_price = sum(q.ask_price for q in quotes), 1.0

        return ArbitrageOpportunity(
            id=str(uuid.uuid4()),
            market_id=market_id,
            type=arb_type,
            buy_outcome=buy_outcome,
            sell_outcome=sell_outcome,
            buy_price=buy_price,
            sell_price=sell_price,
            expected_profit=required_capital * profit_percentage,
            profit_percentage=profit_percentage,
            confidence=0.9,
            risk_score=0.1,
            required_capital=required_capital,
            estimated_slippage=0.005,
            detected_at=now,
            expires_at=now + timedelta(seconds=expires_in),
            quotes=tuple(quotes),
        )
    return _make
