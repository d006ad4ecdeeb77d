# Market monitoring
from .events import EventBus, MonitoringEvent, MonitoringEventType
from .monitor import MarketMonitor
from .state_tracker import MarketState, MarketStateTracker
from .stats import MonitoringStatistics, MonitoringStats

__all__ = [
    "EventBus",
    "MarketMonitor",
    "MarketState",
    "MarketStateTracker",
    "MonitoringEvent",
    "MonitoringEventType",
    "MonitoringStatistics",
    "MonitoringStats",
]
