# Arbitrage detection
from .detector import ArbitrageDetector, DetectorStats
from .complementary_arb import ComplementaryArbitrageDetector
from .mispricing_arb import MispricingDetector
from .temporal_arb import TemporalArbitrageDetector

__all__ = [
    "ArbitrageDetector",
    "DetectorStats",
    "ComplementaryArbitrageDetector",
    "MispricingDetector",
    "TemporalArbitrageDetector",
]
