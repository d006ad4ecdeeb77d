"""
Typed monitoring events and a publish/subscribe bus.

Every event carries a closed type tag plus one payload variant. Subscribers
register independently and may be sync or async callables.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from ..models import ArbitrageOpportunity, Market, PriceQuote, utc_now
from ..utils.logger import get_logger

logger = get_logger("events")


class MonitoringEventType(Enum):
    """All events published by the market monitor."""
    MARKET_ADDED = "market:added"
    MARKET_UPDATED = "market:updated"
    MARKET_REMOVED = "market:removed"
    PRICE_UPDATED = "price:updated"
    PRICE_SPIKE = "price:spike"
    OPPORTUNITY_DETECTED = "opportunity:detected"
    MONITORING_ERROR = "monitoring:error"
    MONITORING_STARTED = "monitoring:started"
    MONITORING_STOPPED = "monitoring:stopped"


@dataclass(frozen=True)
class MarketPayload:
    market: Market


@dataclass(frozen=True)
class PriceUpdatePayload:
    market_id: str
    prices: list[PriceQuote]
    previous_prices: Optional[list[PriceQuote]] = None  # None on first update


@dataclass(frozen=True)
class PriceSpikePayload:
    """Large move between two consecutive snapshots, e.g. 0.50 -> 0.60."""
    market_id: str
    outcome: str
    old_price: float
    new_price: float
    change: float
    change_percentage: float  # 20.0 for a 20% move


@dataclass(frozen=True)
class OpportunityPayload:
    opportunity: ArbitrageOpportunity


@dataclass(frozen=True)
class ErrorPayload:
    error: str
    context: str  # Where it happened, e.g. "fetch_markets"
    market_id: Optional[str] = None


@dataclass(frozen=True)
class LifecyclePayload:
    poll_interval_seconds: float


EventPayload = Union[
    MarketPayload,
    PriceUpdatePayload,
    PriceSpikePayload,
    OpportunityPayload,
    ErrorPayload,
    LifecyclePayload,
]

_PAYLOAD_TYPES: dict[MonitoringEventType, type] = {
    MonitoringEventType.MARKET_ADDED: MarketPayload,
    MonitoringEventType.MARKET_UPDATED: MarketPayload,
    MonitoringEventType.MARKET_REMOVED: MarketPayload,
    MonitoringEventType.PRICE_UPDATED: PriceUpdatePayload,
    MonitoringEventType.PRICE_SPIKE: PriceSpikePayload,
    MonitoringEventType.OPPORTUNITY_DETECTED: OpportunityPayload,
    MonitoringEventType.MONITORING_ERROR: ErrorPayload,
    MonitoringEventType.MONITORING_STARTED: LifecyclePayload,
    MonitoringEventType.MONITORING_STOPPED: LifecyclePayload,
}


@dataclass(frozen=True)
class MonitoringEvent:
    type: MonitoringEventType
    payload: EventPayload
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        expected = _PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.type.name} requires {expected.__name__}, got {type(self.payload).__name__}"
            )


EventHandler = Callable[[MonitoringEvent], Any]


class EventBus:
    """
    Fan-out of monitoring events to independent subscribers.

    A handler that raises is logged and skipped; other handlers still
    receive the event.
    """

    def __init__(self):
        self._subscribers: list[tuple[EventHandler, Optional[frozenset]]] = []
        self._published = 0

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[MonitoringEventType]] = None
    ) -> Callable[[], None]:
        """
        Register a handler.

        Args:
            handler: Sync or async callable taking a MonitoringEvent
            event_types: Types to receive, all types if None

        Returns:
            Callable that removes this subscription
        """
        types = frozenset(event_types) if event_types is not None else None
        entry = (handler, types)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    async def publish(self, event: MonitoringEvent) -> None:
        """Deliver an event to every matching subscriber."""
        self._published += 1
        for handler, types in list(self._subscribers):
            if types is not None and event.type not in types:
                continue
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Event handler failed: {e}",
                    extra={"event_type": event.type.value, "handler": getattr(handler, "__name__", repr(handler))}
                )

    async def emit(self, event_type: MonitoringEventType, payload: EventPayload) -> None:
        await self.publish(MonitoringEvent(type=event_type, payload=payload))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published
