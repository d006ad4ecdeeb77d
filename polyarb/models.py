"""
Shared data models: markets, price quotes, opportunities, trades, positions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class Market:
    """Prediction market metadata."""
    market_id: str
    question: str
    outcomes: list[str]
    active: bool = True
    volume: float = 0.0
    liquidity: float = 0.0
    description: str = ""
    end_date: Optional[datetime] = None
    token_ids: list[str] = field(default_factory=list)  # One per outcome, real API only

    @property
    def is_binary(self) -> bool:
        return len(self.outcomes) == 2

    def get_token_id(self, outcome: str) -> Optional[str]:
        """Get the CLOB token ID for an outcome label."""
        for label, token_id in zip(self.outcomes, self.token_ids):
            if label == outcome:
                return token_id
        return None


@dataclass(frozen=True)
class PriceQuote:
    """
    Top-of-book quote for one outcome.

    Prices are implied probabilities in [0, 1]. A bid above the ask is a
    valid (anomalous) quote, not a parse error.
    """
    market_id: str
    outcome: str
    bid_price: float
    ask_price: float
    last_price: float
    observed_at: datetime = field(default_factory=utc_now)

    @property
    def spread(self) -> float:
        return self.ask_price - self.bid_price

    @property
    def is_inverted(self) -> bool:
        return self.bid_price > self.ask_price


class ArbitrageType(Enum):
    """Detection strategy that produced an opportunity."""
    COMPLEMENTARY = "COMPLEMENTARY"  # Buy every outcome for less than $1.00
    MISPRICING = "MISPRICING"        # Bid above ask on one outcome
    TEMPORAL = "TEMPORAL"            # Bids sum above $1.00, wait for convergence
    CROSS_MARKET = "CROSS_MARKET"    # Reserved, never produced


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Detected opportunity. Immutable once created."""
    id: str
    market_id: str
    type: ArbitrageType
    buy_outcome: str
    sell_outcome: str
    buy_price: float
    sell_price: float
    expected_profit: float
    profit_percentage: float
    confidence: float
    risk_score: float
    required_capital: float
    estimated_slippage: float
    detected_at: datetime
    expires_at: datetime
    quotes: tuple[PriceQuote, ...] = ()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def quote_for(self, outcome: str) -> Optional[PriceQuote]:
        for quote in self.quotes:
            if quote.outcome == outcome:
                return quote
        return None


class TradeStatus(Enum):
    """Trade lifecycle: PENDING -> EXECUTED | FAILED | CANCELLED."""
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_final(self) -> bool:
        return self != TradeStatus.PENDING


class TradeSide(Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Trade:
    """Single trade leg. Mutated only by the executor."""
    id: str
    market_id: str
    outcome: str
    side: TradeSide
    amount: float  # USDC notional
    price: float
    status: TradeStatus = TradeStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    executed_at: Optional[datetime] = None
    realized_profit: Optional[float] = None
    error: Optional[str] = None
    tx_ref: Optional[str] = None
    opportunity_id: Optional[str] = None
    dry_run: bool = False

    @property
    def quantity(self) -> float:
        """Number of outcome shares this leg trades."""
        if self.price <= 0:
            return 0.0
        return self.amount / self.price


@dataclass
class Position:
    """Open position in one outcome. Quantity is negative for net sells."""
    market_id: str
    outcome: str
    quantity: float
    average_price: float

    @property
    def exposure(self) -> float:
        """Capital committed; a short commits collateral just like a long."""
        return abs(self.quantity) * self.average_price
