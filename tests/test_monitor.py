"""
Tests for the market monitor loop.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from polyarb.arbitrage.detector import ArbitrageDetector
from polyarb.clients.mock_client import MockPolymarketClient
from polyarb.exceptions import ExchangeError
from polyarb.execution.executor import TradeExecutor
from polyarb.execution.submitter import SimulatedOrderSubmitter
from polyarb.models import ArbitrageType
from polyarb.monitoring.events import EventBus, MonitoringEventType
from polyarb.monitoring.monitor import MarketMonitor
from polyarb.monitoring.state_tracker import MarketStateTracker
from polyarb.monitoring.stats import MonitoringStats
from polyarb.risk.manager import RiskManager


class FlakyClient(MockPolymarketClient):
    """Mock client whose price fetch fails for selected markets."""

    def __init__(self, failing_ids, **kwargs):
        super().__init__(**kwargs)
        self.failing_ids = set(failing_ids)

    async def get_market_prices(self, market_id):
        if market_id in self.failing_ids:
            raise ExchangeError(f"timeout fetching {market_id}")
        return await super().get_market_prices(market_id)


class GatedClient(MockPolymarketClient):
    """Mock client that holds price fetches for selected markets until released."""

    def __init__(self, gated_ids, **kwargs):
        super().__init__(**kwargs)
        self.gated_ids = set(gated_ids)
        self.waiting = asyncio.Event()
        self.release = asyncio.Event()

    async def get_market_prices(self, market_id):
        prices = await super().get_market_prices(market_id)
        if market_id in self.gated_ids:
            self.waiting.set()
            await self.release.wait()
        return prices


def flat_quotes(make_quote, market_id, yes_last=0.50, no_last=0.52):
    """Quotes with no arbitrage: asks sum above 1, bids below 1."""
    return [
        make_quote("Yes", bid=yes_last - 0.01, ask=yes_last + 0.01, last=yes_last, market_id=market_id),
        make_quote("No", bid=no_last - 0.01, ask=no_last + 0.01, last=no_last, market_id=market_id),
    ]


@pytest.fixture
def events():
    return []


@pytest.fixture
def build_monitor(events):
    """Factory wiring a monitor around a client with real components."""
    def _build(client, executor=None, **kwargs):
        bus = EventBus()
        bus.subscribe(events.append)
        risk_manager = RiskManager()
        executor = executor or TradeExecutor(
            submitter=SimulatedOrderSubmitter(seed=1),
            risk_manager=risk_manager,
            trading_enabled=False
        )
        kwargs.setdefault("poll_interval_seconds", 60)
        return MarketMonitor(
            client=client,
            state_tracker=MarketStateTracker(),
            detector=ArbitrageDetector(),
            risk_manager=risk_manager,
            executor=executor,
            event_bus=bus,
            stats=MonitoringStats(),
            **kwargs
        )
    return _build


def of_type(events, event_type):
    return [e for e in events if e.type == event_type]


class TestTick:
    """Tests for a single monitoring cycle."""

    @pytest.mark.asyncio
    async def test_tick_tracks_markets_and_prices(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a"), make_market("b")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        client.set_prices("b", flat_quotes(make_quote, "b"))
        monitor = build_monitor(client)

        await monitor.tick()

        assert {m.market_id for m in monitor.get_markets()} == {"a", "b"}
        assert len(monitor.get_prices("a")) == 2
        assert set(monitor.get_all_prices()) == {"a", "b"}
        assert monitor.state_tracker.get_state("a").update_count == 1
        assert len(of_type(events, MonitoringEventType.MARKET_ADDED)) == 2
        updates = of_type(events, MonitoringEventType.PRICE_UPDATED)
        assert len(updates) == 2
        assert all(e.payload.previous_prices is None for e in updates)
        stats = monitor.stats.get_statistics()
        assert stats.total_markets == 2
        assert stats.total_price_updates == 2

    @pytest.mark.asyncio
    async def test_filters_illiquid_and_inactive_markets(self, build_monitor, make_market, make_quote):
        markets = [
            make_market("deep", liquidity=5000),
            make_market("thin", liquidity=1000),
            make_market("closed", liquidity=5000, active=False),
        ]
        client = MockPolymarketClient(markets=markets)
        for m in markets:
            client.set_prices(m.market_id, flat_quotes(make_quote, m.market_id))
        monitor = build_monitor(client, min_liquidity=1000)

        await monitor.tick()

        assert [m.market_id for m in monitor.get_markets()] == ["deep"]
        assert monitor.get_prices("thin") is None

    @pytest.mark.asyncio
    async def test_opportunity_detected_and_executed(self, build_monitor, events, make_market, binary_arb_quotes):
        client = MockPolymarketClient(markets=[make_market("market-1")])
        client.set_prices("market-1", binary_arb_quotes)
        executor = MagicMock()
        executor.execute = AsyncMock(return_value=[])
        monitor = build_monitor(client, executor=executor)

        await monitor.tick()

        detected = of_type(events, MonitoringEventType.OPPORTUNITY_DETECTED)
        assert len(detected) == 1
        opp = detected[0].payload.opportunity
        assert opp.type == ArbitrageType.COMPLEMENTARY
        executor.execute.assert_awaited_once_with(opp, 10.0)

    @pytest.mark.asyncio
    async def test_rejected_opportunity_not_executed(self, build_monitor, events, make_market, binary_arb_quotes):
        client = MockPolymarketClient(markets=[make_market("market-1")])
        client.set_prices("market-1", binary_arb_quotes)
        executor = MagicMock()
        executor.execute = AsyncMock(return_value=[])
        monitor = build_monitor(client, executor=executor)
        # Exposure already at the limit
        monitor.risk_manager.record_fill("other", "Yes", 2000.0, 0.5)

        await monitor.tick()

        assert len(of_type(events, MonitoringEventType.OPPORTUNITY_DETECTED)) == 1
        executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_market_fetch_failure_ends_tick(self, build_monitor, events):
        client = MockPolymarketClient()
        client.get_markets = AsyncMock(side_effect=ExchangeError("HTTP 503", status=503))
        monitor = build_monitor(client)

        await monitor.tick()

        errors = of_type(events, MonitoringEventType.MONITORING_ERROR)
        assert len(errors) == 1
        assert errors[0].payload.context == "fetch_markets"
        assert monitor.stats.total_errors == 1
        assert monitor.get_markets() == []

    @pytest.mark.asyncio
    async def test_price_failure_isolated_per_market(self, build_monitor, events, make_market, make_quote):
        client = FlakyClient(["bad"], markets=[make_market("good"), make_market("bad")])
        client.set_prices("good", flat_quotes(make_quote, "good"))
        monitor = build_monitor(client)

        await monitor.tick()

        assert monitor.get_prices("good") is not None
        assert monitor.get_prices("bad") is None
        errors = of_type(events, MonitoringEventType.MONITORING_ERROR)
        assert [(e.payload.context, e.payload.market_id) for e in errors] == [("fetch_prices", "bad")]
        assert monitor.stats.total_errors == 1

    @pytest.mark.asyncio
    async def test_market_removed_and_updated(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a"), make_market("b")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        client.set_prices("b", flat_quotes(make_quote, "b"))
        monitor = build_monitor(client)
        await monitor.tick()

        client.set_markets([make_market("a", volume=999999.0)])
        await monitor.tick()

        removed = of_type(events, MonitoringEventType.MARKET_REMOVED)
        assert [e.payload.market.market_id for e in removed] == ["b"]
        updated = of_type(events, MonitoringEventType.MARKET_UPDATED)
        assert [e.payload.market.market_id for e in updated] == ["a"]
        assert monitor.get_market("b") is None
        assert monitor.get_prices("b") is None
        assert monitor.state_tracker.get_state("b") is None

    @pytest.mark.asyncio
    async def test_overlapping_tick_does_not_resurrect_removed_market(self, build_monitor, events, make_market, make_quote):
        client = GatedClient(["b"], markets=[make_market("a"), make_market("b")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        client.set_prices("b", flat_quotes(make_quote, "b"))
        monitor = build_monitor(client)

        slow_tick = asyncio.create_task(monitor.tick())
        await client.waiting.wait()

        client.set_markets([make_market("a")])
        await monitor.tick()
        assert monitor.get_market("b") is None

        client.release.set()
        await slow_tick

        assert monitor.get_prices("b") is None
        assert monitor.state_tracker.get_state("b") is None
        assert "b" not in monitor.get_all_prices()
        price_updates = of_type(events, MonitoringEventType.PRICE_UPDATED)
        assert "b" not in {e.payload.market_id for e in price_updates}

    @pytest.mark.asyncio
    async def test_unchanged_market_not_updated(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        monitor = build_monitor(client)

        await monitor.tick()
        await monitor.tick()

        assert of_type(events, MonitoringEventType.MARKET_UPDATED) == []
        updates = of_type(events, MonitoringEventType.PRICE_UPDATED)
        assert updates[1].payload.previous_prices is not None

    @pytest.mark.asyncio
    async def test_price_spike(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a")])
        client.set_prices("a", flat_quotes(make_quote, "a", yes_last=0.50, no_last=0.52))
        monitor = build_monitor(client, price_spike_threshold=0.05)
        await monitor.tick()

        # Yes +20%, No unchanged
        client.set_prices("a", flat_quotes(make_quote, "a", yes_last=0.60, no_last=0.52))
        await monitor.tick()

        spikes = of_type(events, MonitoringEventType.PRICE_SPIKE)
        assert len(spikes) == 1
        spike = spikes[0].payload
        assert spike.outcome == "Yes"
        assert spike.old_price == pytest.approx(0.50)
        assert spike.new_price == pytest.approx(0.60)
        assert spike.change_percentage == pytest.approx(20.0)

    @pytest.mark.asyncio
    async def test_small_move_is_not_spike(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a")])
        client.set_prices("a", flat_quotes(make_quote, "a", yes_last=0.50))
        monitor = build_monitor(client, price_spike_threshold=0.05)
        await monitor.tick()

        client.set_prices("a", flat_quotes(make_quote, "a", yes_last=0.51))
        await monitor.tick()

        assert of_type(events, MonitoringEventType.PRICE_SPIKE) == []


class TestLifecycle:
    """Tests for start/stop and scheduling."""

    @pytest.mark.asyncio
    async def test_start_runs_initial_tick(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        monitor = build_monitor(client)

        await monitor.start()
        try:
            assert monitor.is_running
            assert events[0].type == MonitoringEventType.MONITORING_STARTED
            assert monitor.get_market("a") is not None
        finally:
            await monitor.stop()

        assert not monitor.is_running
        assert events[-1].type == MonitoringEventType.MONITORING_STOPPED

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, build_monitor, events, make_market, make_quote):
        client = MockPolymarketClient(markets=[make_market("a")])
        client.set_prices("a", flat_quotes(make_quote, "a"))
        monitor = build_monitor(client)

        await monitor.start()
        await monitor.start()
        await monitor.stop()

        assert len(of_type(events, MonitoringEventType.MONITORING_STARTED)) == 1

    @pytest.mark.asyncio
    async def test_slow_ticks_do_not_delay_schedule(self, build_monitor, make_market):
        client = MockPolymarketClient(markets=[make_market("a")])
        calls = []

        async def slow_get_markets(limit=100, offset=0):
            calls.append(limit)
            await asyncio.sleep(0.2)
            return []

        client.get_markets = slow_get_markets
        monitor = build_monitor(client, poll_interval_seconds=0.05)

        await monitor.start()
        await asyncio.sleep(0.3)
        await monitor.stop()
        count_at_stop = len(calls)

        # Initial tick plus several overlapping timer ticks
        assert count_at_stop >= 3

        # Let in-flight ticks finish; nothing new is scheduled after stop
        await asyncio.sleep(0.3)
        assert len(calls) == count_at_stop

    @pytest.mark.asyncio
    async def test_trending_markets_swallow_client_errors(self, build_monitor):
        client = MockPolymarketClient()
        monitor = build_monitor(client)

        trending = await monitor.get_trending_markets(limit=2)
        assert [m.market_id for m in trending] == ["mock-market-3", "mock-market-1"]

        client.get_trending_markets = AsyncMock(side_effect=ExchangeError("down"))
        assert await monitor.get_trending_markets() == []
