"""
Main arbitrage detector that coordinates the detection strategies.
Filters, deduplicates and ranks their candidates.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ..models import ArbitrageOpportunity, PriceQuote, utc_now
from ..utils.logger import get_logger, TradeLogger
from .complementary_arb import ComplementaryArbitrageDetector
from .mispricing_arb import MispricingDetector
from .temporal_arb import TemporalArbitrageDetector

logger = get_logger("detector")
trade_logger = TradeLogger()


@dataclass
class DetectorStats:
    """Statistics for the detector."""
    scans: int = 0
    candidates: int = 0
    opportunities_detected: int = 0
    rejected_profit: int = 0
    rejected_confidence: int = 0
    rejected_slippage: int = 0
    rejected_duplicate: int = 0
    by_type: dict[str, int] = field(default_factory=dict)


class ArbitrageDetector:
    """
    Runs every strategy on one market's quotes per call.

    Filter pipeline, identical for all strategies:
    1. profit percentage below the minimum threshold
    2. confidence below the minimum
    3. estimated slippage above the maximum
    4. duplicate of a recent opportunity (same market and type, profit
       percentage within tolerance, younger than the TTL)

    Survivors are ranked by profit percentage and remembered for
    deduplication. Stale entries are pruned lazily on each call.
    """

    def __init__(
        self,
        min_profit_threshold: float = 0.02,
        min_confidence: float = 0.6,
        max_slippage: float = 0.01,
        max_position_size: float = 100.0,
        dedup_ttl_seconds: float = 60.0,
        dedup_tolerance: float = 0.001
    ):
        """
        Initialize arbitrage detector.

        Args:
            min_profit_threshold: Minimum profit as a fraction of capital
            min_confidence: Minimum confidence score (0-1)
            max_slippage: Maximum estimated slippage (fraction)
            max_position_size: Used to normalize capital in risk scores
            dedup_ttl_seconds: How long a detected opportunity suppresses repeats
            dedup_tolerance: Absolute profit-percentage difference treated as equal
        """
        self.min_profit_threshold = min_profit_threshold
        self.min_confidence = min_confidence
        self.max_slippage = max_slippage
        self.dedup_ttl = timedelta(seconds=dedup_ttl_seconds)
        self.dedup_tolerance = dedup_tolerance

        self.complementary_detector = ComplementaryArbitrageDetector(
            max_position_size=max_position_size
        )
        self.mispricing_detector = MispricingDetector()
        self.temporal_detector = TemporalArbitrageDetector()

        self._recent: list[ArbitrageOpportunity] = []
        self._stats = DetectorStats()

    def detect(
        self,
        prices: Sequence[PriceQuote],
        now: Optional[datetime] = None
    ) -> list[ArbitrageOpportunity]:
        """
        Detect opportunities in one market's quotes.

        Args:
            prices: Current quotes for every outcome of a single market
            now: Detection time, defaults to the current UTC time

        Returns:
            Accepted opportunities, highest profit percentage first
        """
        now = now or utc_now()
        self._prune_recent(now)

        if not prices:
            return []

        self._stats.scans += 1
        candidates = self._generate_candidates(prices, now)
        self._stats.candidates += len(candidates)

        accepted = [opp for opp in candidates if self._passes_filters(opp, now)]
        accepted.sort(key=lambda opp: opp.profit_percentage, reverse=True)

        for opp in accepted:
            self._recent.append(opp)
            self._stats.opportunities_detected += 1
            self._stats.by_type[opp.type.value] = self._stats.by_type.get(opp.type.value, 0) + 1
            trade_logger.opportunity_detected(
                opportunity_id=opp.id,
                market_id=opp.market_id,
                arb_type=opp.type.value,
                profit_percentage=opp.profit_percentage,
                confidence=opp.confidence,
                risk_score=opp.risk_score
            )

        return accepted

    def _generate_candidates(
        self,
        prices: Sequence[PriceQuote],
        now: datetime
    ) -> list[ArbitrageOpportunity]:
        candidates: list[ArbitrageOpportunity] = []

        complementary = self.complementary_detector.check_opportunity(prices, now)
        if complementary:
            candidates.append(complementary)

        candidates.extend(self.mispricing_detector.check_opportunities(prices, now))

        temporal = self.temporal_detector.check_opportunity(prices, now)
        if temporal:
            candidates.append(temporal)

        return candidates

    def _passes_filters(self, opp: ArbitrageOpportunity, now: datetime) -> bool:
        if opp.profit_percentage < self.min_profit_threshold:
            self._stats.rejected_profit += 1
            logger.debug(
                "Rejected: profit below threshold",
                extra={"market_id": opp.market_id, "type": opp.type.value,
                       "profit_percentage": opp.profit_percentage}
            )
            return False

        if opp.confidence < self.min_confidence:
            self._stats.rejected_confidence += 1
            logger.debug(
                "Rejected: confidence below minimum",
                extra={"market_id": opp.market_id, "type": opp.type.value,
                       "confidence": opp.confidence}
            )
            return False

        if opp.estimated_slippage > self.max_slippage:
            self._stats.rejected_slippage += 1
            logger.debug(
                "Rejected: slippage above maximum",
                extra={"market_id": opp.market_id, "type": opp.type.value,
                       "estimated_slippage": opp.estimated_slippage}
            )
            return False

        if self._is_duplicate(opp, now):
            self._stats.rejected_duplicate += 1
            logger.debug(
                "Rejected: duplicate",
                extra={"market_id": opp.market_id, "type": opp.type.value}
            )
            return False

        return True

    def _is_duplicate(self, opp: ArbitrageOpportunity, now: datetime) -> bool:
        for recent in self._recent:
            if (
                recent.market_id == opp.market_id
                and recent.type == opp.type
                and now - recent.detected_at < self.dedup_ttl
                and abs(recent.profit_percentage - opp.profit_percentage) <= self.dedup_tolerance
            ):
                return True
        return False

    def _prune_recent(self, now: datetime) -> None:
        self._recent = [opp for opp in self._recent if now - opp.detected_at < self.dedup_ttl]

    def is_profitable(self, opportunity: ArbitrageOpportunity) -> bool:
        return opportunity.profit_percentage >= self.min_profit_threshold

    def get_recent_opportunities(self) -> list[ArbitrageOpportunity]:
        return list(self._recent)

    def clear_recent(self) -> None:
        """Forget recent opportunities so identical quotes signal again."""
        self._recent.clear()

    def get_stats(self) -> DetectorStats:
        """Get detector statistics."""
        return self._stats
