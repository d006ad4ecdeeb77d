"""
Exposure and risk ledger.

Implements capital controls for arbitrage execution:
- Single-position size limit
- Total exposure limit
- Minimum profit re-check against stale opportunities
- Position bookkeeping with volume-weighted average prices
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..models import ArbitrageOpportunity, Position
from ..utils.logger import get_logger

logger = get_logger("risk")

# Quantities smaller than this are treated as a flat position
FLAT_EPSILON = 1e-9


@dataclass
class RiskLimits:
    """Risk limit configuration."""
    max_position_size: float = 100.0
    max_total_exposure: float = 1000.0
    min_profit_threshold: float = 0.02
    default_position_size: float = 10.0


@dataclass
class RiskCheckResult:
    """Result of risk check."""
    allowed: bool
    reason: str


class RiskManager:
    """
    Tracks open positions and admits or rejects proposed trades.

    Exposure is recomputed from every position after each fill, so the
    reported total always equals the sum over the position map.
    """

    def __init__(self, limits: Optional[RiskLimits] = None):
        self.limits = limits or RiskLimits()

        self._positions: Dict[tuple[str, str], Position] = {}
        self._total_exposure: float = 0.0

    def check(self, opportunity: ArbitrageOpportunity, amount: float) -> RiskCheckResult:
        """
        Check a proposed trade against every limit.

        Returns:
            RiskCheckResult with the first failing reason
        """
        if amount > self.limits.max_position_size:
            return RiskCheckResult(
                allowed=False,
                reason=f"Amount {amount:.2f} exceeds max position size {self.limits.max_position_size:.2f}"
            )

        if self._total_exposure + amount > self.limits.max_total_exposure:
            return RiskCheckResult(
                allowed=False,
                reason=(
                    f"Exposure {self._total_exposure:.2f} + {amount:.2f} exceeds "
                    f"max total exposure {self.limits.max_total_exposure:.2f}"
                )
            )

        if opportunity.profit_percentage < self.limits.min_profit_threshold:
            return RiskCheckResult(
                allowed=False,
                reason=(
                    f"Profit {opportunity.profit_percentage:.4f} below threshold "
                    f"{self.limits.min_profit_threshold:.4f}"
                )
            )

        return RiskCheckResult(allowed=True, reason="All checks passed")

    def can_execute(self, opportunity: ArbitrageOpportunity, amount: float) -> bool:
        """Whether a trade of `amount` USDC on this opportunity is allowed."""
        result = self.check(opportunity, amount)
        if not result.allowed:
            logger.warning(
                f"Trade rejected: {result.reason}",
                extra={"opportunity_id": opportunity.id, "market_id": opportunity.market_id}
            )
        return result.allowed

    def size_position(self, opportunity: ArbitrageOpportunity) -> float:
        """
        Capital to commit to an opportunity.

        Deliberately conservative: a fixed default capped by the max
        position size, regardless of the opportunity's edge.
        """
        return min(self.limits.max_position_size, self.limits.default_position_size)

    def record_fill(self, market_id: str, outcome: str, quantity: float, price: float) -> Position:
        """
        Apply a fill to the position for (market_id, outcome).

        Args:
            market_id: Market of the fill
            outcome: Outcome label
            quantity: Shares, positive for buys and negative for sells
            price: Fill price

        Returns:
            The updated position (quantity 0 if the fill flattened it)
        """
        key = (market_id, outcome)
        existing = self._positions.get(key)

        if existing is None:
            position = Position(
                market_id=market_id,
                outcome=outcome,
                quantity=quantity,
                average_price=price
            )
            self._positions[key] = position
        else:
            position = existing
            total_quantity = existing.quantity + quantity

            if abs(total_quantity) < FLAT_EPSILON:
                position.quantity = 0.0
                del self._positions[key]
            elif existing.quantity * quantity > 0:
                # Adding in the same direction: volume-weighted average
                position.average_price = (
                    existing.average_price * existing.quantity + price * quantity
                ) / total_quantity
                position.quantity = total_quantity
            elif existing.quantity * total_quantity > 0:
                # Reducing: remaining shares keep their cost basis
                position.quantity = total_quantity
            else:
                # Flipped through zero: remainder opened at this price
                position.quantity = total_quantity
                position.average_price = price

        self._update_total_exposure()

        logger.debug(
            "Position updated",
            extra={
                "market_id": market_id,
                "outcome": outcome,
                "quantity": position.quantity,
                "average_price": position.average_price,
                "total_exposure": self._total_exposure
            }
        )
        return position

    def _update_total_exposure(self) -> None:
        self._total_exposure = sum(p.exposure for p in self._positions.values())

    def get_positions(self) -> List[Position]:
        return list(self._positions.values())

    def get_position(self, market_id: str, outcome: str) -> Optional[Position]:
        return self._positions.get((market_id, outcome))

    def get_total_exposure(self) -> float:
        return self._total_exposure

    def get_risk_summary(self) -> Dict[str, Any]:
        """Get summary of current risk state."""
        return {
            "open_positions": len(self._positions),
            "total_exposure": self._total_exposure,
            "max_exposure": self.limits.max_total_exposure,
            "exposure_used": (
                self._total_exposure / self.limits.max_total_exposure
                if self.limits.max_total_exposure else 0.0
            ),
            "max_position_size": self.limits.max_position_size,
            "min_profit_threshold": self.limits.min_profit_threshold,
        }
