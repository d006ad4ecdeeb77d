"""
Complementary arbitrage detector.
Detects when buying every outcome costs less than the guaranteed $1.00 payout.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence
import uuid

from ..models import ArbitrageOpportunity, ArbitrageType, PriceQuote
from ..utils.logger import get_logger
from .scoring import average_spread, capital_spread_risk, complementary_confidence

logger = get_logger("complementary_arb")

EXPIRY = timedelta(seconds=30)


class ComplementaryArbitrageDetector:
    """
    Detector for all-outcome basket arbitrage.

    Exactly one outcome resolves to $1.00, so a basket holding one share of
    every outcome is worth $1.00 at settlement. If the asks sum to less than
    that, the difference is locked in.

    Profit = $1.00 - sum(asks)
    """

    def __init__(self, max_position_size: float = 100.0):
        """
        Args:
            max_position_size: Normalizer for the capital component of risk
        """
        self.max_position_size = max_position_size

    def check_opportunity(
        self,
        prices: Sequence[PriceQuote],
        now: datetime
    ) -> Optional[ArbitrageOpportunity]:
        """
        Check one market's quotes for a complementary opportunity.

        Args:
            prices: Quotes for every outcome of a single market
            now: Detection time

        Returns:
            Opportunity, or None if the basket costs $1.00 or more
        """
        if len(prices) < 2:
            return None

        # An empty ask side quotes 0.0; the basket cannot be bought
        if any(p.ask_price <= 0 for p in prices):
            return None

        total_cost = sum(p.ask_price for p in prices)
        if total_cost <= 0 or total_cost >= 1.0:
            return None

        profit = 1.0 - total_cost
        spread = average_spread(prices)

        opportunity = ArbitrageOpportunity(
            id=str(uuid.uuid4()),
            market_id=prices[0].market_id,
            type=ArbitrageType.COMPLEMENTARY,
            buy_outcome=",".join(p.outcome for p in prices),
            sell_outcome="none",
            buy_price=total_cost,
            sell_price=1.0,
            expected_profit=profit,
            profit_percentage=profit / total_cost,
            confidence=complementary_confidence(spread, len(prices)),
            risk_score=capital_spread_risk(total_cost, self.max_position_size, spread),
            required_capital=total_cost,
            estimated_slippage=max(0.0, spread) / 2,
            detected_at=now,
            expires_at=now + EXPIRY,
            quotes=tuple(prices),
        )

        logger.debug(
            "Complementary candidate",
            extra={
                "market_id": opportunity.market_id,
                "total_cost": total_cost,
                "profit_percentage": opportunity.profit_percentage
            }
        )
        return opportunity
