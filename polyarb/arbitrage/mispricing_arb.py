"""
Mispricing detector for inverted order books (bid above ask).
"""

from datetime import datetime, timedelta
from typing import Sequence
import uuid

from ..models import ArbitrageOpportunity, ArbitrageType, PriceQuote

EXPIRY = timedelta(seconds=10)
CONFIDENCE = 0.9
SLIPPAGE = 0.001
RISK_SCORE = 0.1


class MispricingDetector:
    """
    Buy at the ask and immediately sell at the higher bid.

    An inverted book is treated as unambiguous, so scoring is fixed rather
    than derived from market statistics.
    """

    def check_opportunities(
        self,
        prices: Sequence[PriceQuote],
        now: datetime
    ) -> list[ArbitrageOpportunity]:
        """One opportunity per outcome whose bid exceeds its ask."""
        opportunities = []

        for quote in prices:
            if not quote.is_inverted or quote.ask_price <= 0:
                continue

            profit = quote.bid_price - quote.ask_price
            opportunities.append(ArbitrageOpportunity(
                id=str(uuid.uuid4()),
                market_id=quote.market_id,
                type=ArbitrageType.MISPRICING,
                buy_outcome=quote.outcome,
                sell_outcome=quote.outcome,
                buy_price=quote.ask_price,
                sell_price=quote.bid_price,
                expected_profit=profit,
                profit_percentage=profit / quote.ask_price,
                confidence=CONFIDENCE,
                risk_score=RISK_SCORE,
                required_capital=quote.ask_price,
                estimated_slippage=SLIPPAGE,
                detected_at=now,
                expires_at=now + EXPIRY,
                quotes=(quote,),
            ))

        return opportunities
