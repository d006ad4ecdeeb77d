"""
Throughput and error statistics for the monitor loop.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..models import utc_now
from ..utils.logger import get_logger

logger = get_logger("stats")


@dataclass
class MonitoringStatistics:
    """Point-in-time statistics snapshot."""
    start_time: datetime
    uptime_seconds: float
    total_markets: int
    active_markets: int
    total_price_updates: int
    total_errors: int
    average_update_interval: float  # Seconds between recent price updates
    last_update_time: Optional[datetime]
    markets_per_second: float
    updates_per_minute: int


class MonitoringStats:
    """
    Counters for the monitor loop.

    Keeps the last 100 price-update timestamps to derive the average
    update interval and the updates-per-minute rate.
    """

    def __init__(self, max_timestamps: int = 100):
        self.max_timestamps = max_timestamps
        self.reset()

    def record_market_update(self, market_count: int) -> None:
        self._total_markets = market_count
        self._active_markets = market_count
        self._last_update_time = utc_now()

    def record_price_update(self) -> None:
        now = utc_now()
        self._total_price_updates += 1
        self._update_timestamps.append(now)
        self._last_update_time = now

    def record_error(self) -> None:
        self._total_errors += 1

    @property
    def total_errors(self) -> int:
        return self._total_errors

    def get_statistics(self) -> MonitoringStatistics:
        now = utc_now()
        uptime = (now - self._start_time).total_seconds()

        return MonitoringStatistics(
            start_time=self._start_time,
            uptime_seconds=uptime,
            total_markets=self._total_markets,
            active_markets=self._active_markets,
            total_price_updates=self._total_price_updates,
            total_errors=self._total_errors,
            average_update_interval=self._average_interval(),
            last_update_time=self._last_update_time,
            markets_per_second=self._total_markets / uptime if uptime > 0 else 0.0,
            updates_per_minute=self._updates_in_last_minute(now),
        )

    def _average_interval(self) -> float:
        if len(self._update_timestamps) < 2:
            return 0.0
        stamps = list(self._update_timestamps)
        span = (stamps[-1] - stamps[0]).total_seconds()
        return span / (len(stamps) - 1)

    def _updates_in_last_minute(self, now: datetime) -> int:
        cutoff = now - timedelta(minutes=1)
        return sum(1 for ts in self._update_timestamps if ts >= cutoff)

    def reset(self) -> None:
        self._start_time = utc_now()
        self._total_markets = 0
        self._active_markets = 0
        self._total_price_updates = 0
        self._total_errors = 0
        self._update_timestamps: deque = deque(maxlen=self.max_timestamps)
        self._last_update_time: Optional[datetime] = None

    def log_statistics(self) -> None:
        stats = self.get_statistics()
        logger.info(
            "Monitoring statistics",
            extra={
                "uptime_seconds": round(stats.uptime_seconds),
                "total_markets": stats.total_markets,
                "active_markets": stats.active_markets,
                "total_price_updates": stats.total_price_updates,
                "total_errors": stats.total_errors,
                "updates_per_minute": stats.updates_per_minute,
                "avg_update_interval": round(stats.average_update_interval, 2)
            }
        )
