"""
Tests for the monitoring event bus.
"""

import pytest

from polyarb.monitoring.events import (
    ErrorPayload,
    EventBus,
    LifecyclePayload,
    MarketPayload,
    MonitoringEvent,
    MonitoringEventType,
)


@pytest.fixture
def bus():
    return EventBus()


def error_event():
    return MonitoringEvent(
        type=MonitoringEventType.MONITORING_ERROR,
        payload=ErrorPayload(error="boom", context="test")
    )


class TestMonitoringEvent:

    def test_payload_must_match_type(self, make_market):
        with pytest.raises(TypeError):
            MonitoringEvent(
                type=MonitoringEventType.PRICE_UPDATED,
                payload=MarketPayload(market=make_market())
            )

    def test_timestamp_defaults_to_now(self):
        assert error_event().timestamp.tzinfo is not None


class TestEventBus:

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self, bus):
        received = []

        def sync_handler(event):
            received.append(("sync", event.type))

        async def async_handler(event):
            received.append(("async", event.type))

        bus.subscribe(sync_handler)
        bus.subscribe(async_handler)
        await bus.publish(error_event())

        assert received == [
            ("sync", MonitoringEventType.MONITORING_ERROR),
            ("async", MonitoringEventType.MONITORING_ERROR),
        ]
        assert bus.published_count == 1

    @pytest.mark.asyncio
    async def test_type_filter(self, bus):
        received = []
        bus.subscribe(received.append, event_types=[MonitoringEventType.MONITORING_STARTED])

        await bus.publish(error_event())
        await bus.emit(MonitoringEventType.MONITORING_STARTED, LifecyclePayload(poll_interval_seconds=5))

        assert [e.type for e in received] == [MonitoringEventType.MONITORING_STARTED]

    @pytest.mark.asyncio
    async def test_failing_handler_isolated(self, bus):
        received = []

        def broken(event):
            raise RuntimeError("handler bug")

        async def broken_async(event):
            raise ValueError("async handler bug")

        bus.subscribe(broken)
        bus.subscribe(broken_async)
        bus.subscribe(received.append)

        await bus.publish(error_event())

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, bus):
        received = []
        unsubscribe = bus.subscribe(received.append)
        assert bus.subscriber_count == 1

        unsubscribe()
        unsubscribe()
        await bus.publish(error_event())

        assert received == []
        assert bus.subscriber_count == 0
