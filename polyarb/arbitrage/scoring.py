"""
Confidence and risk scoring shared by the detection strategies.
"""

from typing import Sequence

import numpy as np

from ..models import PriceQuote

# Spread at which spread-based confidence bottoms out (1 - 0.05 * 10 = 0.5)
SPREAD_CONFIDENCE_SCALE = 10.0
MIN_SPREAD_CONFIDENCE = 0.5

# Each outcome beyond two costs 5% confidence, down to 0.8x
OUTCOME_PENALTY = 0.05
MIN_OUTCOME_FACTOR = 0.8

SPREAD_RISK_SCALE = 10.0


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def average_spread(prices: Sequence[PriceQuote]) -> float:
    """Mean ask - bid across outcomes. Negative for inverted books."""
    if not prices:
        return 0.0
    return float(np.mean([p.ask_price - p.bid_price for p in prices]))


def complementary_confidence(avg_spread: float, num_outcomes: int) -> float:
    """
    Confidence that an all-outcome basket can be filled at quoted prices.

    Tighter spreads score higher (floor 0.5). Markets with more than two
    outcomes are scaled down slightly (floor 0.8x).
    """
    spread_confidence = max(MIN_SPREAD_CONFIDENCE, 1.0 - avg_spread * SPREAD_CONFIDENCE_SCALE)
    outcome_factor = max(MIN_OUTCOME_FACTOR, 1.0 - OUTCOME_PENALTY * max(0, num_outcomes - 2))
    return clamp(spread_confidence * outcome_factor)


def capital_spread_risk(
    required_capital: float,
    max_position_size: float,
    avg_spread: float
) -> float:
    """Average of capital-to-max-position ratio and normalized spread, in [0, 1]."""
    if max_position_size > 0:
        capital_risk = min(1.0, required_capital / max_position_size)
    else:
        capital_risk = 1.0
    spread_risk = min(1.0, max(0.0, avg_spread) * SPREAD_RISK_SCALE)
    return clamp((capital_risk + spread_risk) / 2)
