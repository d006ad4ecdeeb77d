"""
Temporal arbitrage detector for binary markets whose bids sum above $1.00.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence
import uuid

from ..models import ArbitrageOpportunity, ArbitrageType, PriceQuote
from .scoring import average_spread, complementary_confidence

EXPIRY = timedelta(seconds=60)
CONFIDENCE_DISCOUNT = 0.6
MIN_CONFIDENCE = 0.3
SLIPPAGE_SPREAD_MULTIPLIER = 1.5
RISK_SCORE = 0.7


class TemporalArbitrageDetector:
    """
    Sell both sides of a binary market when buyers overpay in aggregate.

    Unlike the complementary basket this is not settled instantly: profit
    depends on prices converging back, so confidence is discounted and the
    risk score is high.

    Profit = sum(bids) - $1.00
    Capital = $2.00 - sum(bids), the collateral backing both short legs
    """

    def check_opportunity(
        self,
        prices: Sequence[PriceQuote],
        now: datetime
    ) -> Optional[ArbitrageOpportunity]:
        if len(prices) != 2:
            return None

        if any(p.bid_price <= 0 for p in prices):
            return None

        total_bid = sum(p.bid_price for p in prices)
        if total_bid <= 1.0:
            return None

        profit = total_bid - 1.0
        required_capital = 2.0 - total_bid
        if required_capital <= 0:
            return None

        spread = average_spread(prices)
        confidence = max(
            MIN_CONFIDENCE,
            complementary_confidence(spread, len(prices)) * CONFIDENCE_DISCOUNT
        )

        return ArbitrageOpportunity(
            id=str(uuid.uuid4()),
            market_id=prices[0].market_id,
            type=ArbitrageType.TEMPORAL,
            buy_outcome="none",
            sell_outcome=",".join(p.outcome for p in prices),
            buy_price=1.0,
            sell_price=total_bid,
            expected_profit=profit,
            profit_percentage=profit / required_capital,
            confidence=confidence,
            risk_score=RISK_SCORE,
            required_capital=required_capital,
            estimated_slippage=SLIPPAGE_SPREAD_MULTIPLIER * max(0.0, spread),
            detected_at=now,
            expires_at=now + EXPIRY,
            quotes=tuple(prices),
        )
