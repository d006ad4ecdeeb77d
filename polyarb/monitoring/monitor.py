"""
Market monitor.
Polls the exchange on a fixed interval, keeps the state tracker current and
feeds every market's quotes through detection, risk admission and execution.
"""

import asyncio
from typing import Optional

from ..arbitrage.detector import ArbitrageDetector
from ..clients.base import ExchangeClient
from ..execution.executor import TradeExecutor
from ..models import ArbitrageOpportunity, Market, PriceQuote
from ..risk.manager import RiskManager
from ..utils.logger import get_logger
from .events import (
    ErrorPayload,
    EventBus,
    LifecyclePayload,
    MarketPayload,
    MonitoringEventType,
    OpportunityPayload,
    PriceSpikePayload,
    PriceUpdatePayload,
)
from .state_tracker import MarketStateTracker
from .stats import MonitoringStats

logger = get_logger("monitor")


class MarketMonitor:
    """
    Periodic monitor -> detect -> execute loop.

    A tick is launched every poll interval whether or not the previous tick
    has finished. Errors inside a tick are counted and published as
    MONITORING_ERROR events; they never stop the loop.
    """

    def __init__(
        self,
        client: ExchangeClient,
        state_tracker: MarketStateTracker,
        detector: ArbitrageDetector,
        risk_manager: RiskManager,
        executor: TradeExecutor,
        event_bus: Optional[EventBus] = None,
        stats: Optional[MonitoringStats] = None,
        poll_interval_seconds: float = 5.0,
        market_limit: int = 50,
        min_liquidity: float = 1000.0,
        price_spike_threshold: float = 0.05,
        max_concurrent_fetches: int = 10
    ):
        """
        Initialize monitor.

        Args:
            client: Exchange client
            state_tracker: Per-market state and history
            detector: Arbitrage detector
            risk_manager: Position ledger and admission checks
            executor: Trade executor
            event_bus: Event bus, a private one is created if None
            stats: Statistics collector, a private one is created if None
            poll_interval_seconds: Seconds between ticks
            market_limit: Markets fetched per tick
            min_liquidity: Markets at or below this liquidity are ignored
            price_spike_threshold: Fractional move that counts as a spike (0.05 = 5%)
            max_concurrent_fetches: Concurrent per-market price fetches
        """
        self.client = client
        self.state_tracker = state_tracker
        self.detector = detector
        self.risk_manager = risk_manager
        self.executor = executor
        self.event_bus = event_bus or EventBus()
        self.stats = stats or MonitoringStats()
        self.poll_interval_seconds = poll_interval_seconds
        self.market_limit = market_limit
        self.min_liquidity = min_liquidity
        self.price_spike_threshold = price_spike_threshold

        self._markets: dict[str, Market] = {}
        self._prices: dict[str, list[PriceQuote]] = {}
        self._markets_lock = asyncio.Lock()
        self._prices_lock = asyncio.Lock()
        self._fetch_semaphore = asyncio.Semaphore(max_concurrent_fetches)

        self._running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_tasks: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run one tick immediately, then poll on the configured interval."""
        if self._running:
            logger.warning("Monitor already running")
            return

        self._running = True
        logger.info(
            "Starting market monitor",
            extra={"poll_interval_seconds": self.poll_interval_seconds, "market_limit": self.market_limit}
        )
        await self.event_bus.emit(
            MonitoringEventType.MONITORING_STARTED,
            LifecyclePayload(poll_interval_seconds=self.poll_interval_seconds)
        )

        await self.tick()
        self._timer_task = asyncio.create_task(self._run_timer())

    async def stop(self) -> None:
        """Stop scheduling ticks. Ticks already in flight run to completion."""
        if not self._running:
            return

        self._running = False
        if self._timer_task:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None

        await self.event_bus.emit(
            MonitoringEventType.MONITORING_STOPPED,
            LifecyclePayload(poll_interval_seconds=self.poll_interval_seconds)
        )
        logger.info("Market monitor stopped")

    async def _run_timer(self) -> None:
        while self._running:
            await asyncio.sleep(self.poll_interval_seconds)
            if not self._running:
                break
            task = asyncio.create_task(self.tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def tick(self) -> None:
        """One monitoring cycle over all tracked markets."""
        try:
            markets = await self.client.get_markets(limit=self.market_limit)
        except Exception as e:
            await self._report_error(e, "fetch_markets")
            return

        eligible = [m for m in markets if m.active and m.liquidity > self.min_liquidity]
        await self._reconcile_markets(eligible)
        self.stats.record_market_update(len(eligible))

        await asyncio.gather(*(self._process_market_bounded(m) for m in eligible))

    async def _reconcile_markets(self, markets: list[Market]) -> None:
        added: list[Market] = []
        updated: list[Market] = []
        removed: list[Market] = []

        async with self._markets_lock:
            current_ids = {m.market_id for m in markets}
            for market in markets:
                existing = self._markets.get(market.market_id)
                if existing is None:
                    added.append(market)
                elif existing != market:
                    updated.append(market)
                self._markets[market.market_id] = market

            for market_id in list(self._markets):
                if market_id not in current_ids:
                    removed.append(self._markets.pop(market_id))

        if removed:
            async with self._prices_lock:
                for market in removed:
                    self._prices.pop(market.market_id, None)
            for market in removed:
                self.state_tracker.remove_market(market.market_id)

        for market in added:
            await self.event_bus.emit(MonitoringEventType.MARKET_ADDED, MarketPayload(market=market))
        for market in updated:
            await self.event_bus.emit(MonitoringEventType.MARKET_UPDATED, MarketPayload(market=market))
        for market in removed:
            await self.event_bus.emit(MonitoringEventType.MARKET_REMOVED, MarketPayload(market=market))

        if added or removed:
            logger.info(
                "Market set changed",
                extra={"added": len(added), "removed": len(removed), "tracked": len(markets)}
            )

    async def _process_market_bounded(self, market: Market) -> None:
        async with self._fetch_semaphore:
            try:
                await self._process_market(market)
            except Exception as e:
                await self._report_error(e, "process_market", market.market_id)

    async def _process_market(self, market: Market) -> None:
        try:
            prices = await self.client.get_market_prices(market.market_id)
        except Exception as e:
            await self._report_error(e, "fetch_prices", market.market_id)
            return

        async with self._markets_lock:
            if market.market_id not in self._markets:
                # Removed by an overlapping tick while prices were in flight
                logger.debug(f"Dropping prices for untracked market {market.market_id}")
                return
            async with self._prices_lock:
                previous = self._prices.get(market.market_id)
                self._prices[market.market_id] = prices
            self.state_tracker.update_market(market, prices)

        self.stats.record_price_update()

        await self.event_bus.emit(
            MonitoringEventType.PRICE_UPDATED,
            PriceUpdatePayload(market_id=market.market_id, prices=prices, previous_prices=previous)
        )
        await self._check_price_spikes(market.market_id, prices)

        opportunities = self.detector.detect(prices)
        for opportunity in opportunities:
            await self.event_bus.emit(
                MonitoringEventType.OPPORTUNITY_DETECTED,
                OpportunityPayload(opportunity=opportunity)
            )
            await self._handle_opportunity(opportunity)

    async def _check_price_spikes(self, market_id: str, prices: list[PriceQuote]) -> None:
        threshold_pct = self.price_spike_threshold * 100
        for quote in prices:
            change_pct = self.state_tracker.get_price_change_percentage(market_id, quote.outcome)
            if change_pct is None or abs(change_pct) < threshold_pct:
                continue

            change = self.state_tracker.get_price_change(market_id, quote.outcome) or 0.0
            logger.info(
                f"Price spike on {market_id} {quote.outcome}: {change_pct:+.2f}%",
                extra={"market_id": market_id, "outcome": quote.outcome, "change_percentage": change_pct}
            )
            await self.event_bus.emit(
                MonitoringEventType.PRICE_SPIKE,
                PriceSpikePayload(
                    market_id=market_id,
                    outcome=quote.outcome,
                    old_price=quote.last_price - change,
                    new_price=quote.last_price,
                    change=change,
                    change_percentage=change_pct
                )
            )

    async def _handle_opportunity(self, opportunity: ArbitrageOpportunity) -> None:
        amount = self.risk_manager.size_position(opportunity)
        if not self.risk_manager.can_execute(opportunity, amount):
            return
        await self.executor.execute(opportunity, amount)

    async def _report_error(self, error: Exception, context: str, market_id: Optional[str] = None) -> None:
        self.stats.record_error()
        logger.error(
            f"Monitoring error in {context}: {error}",
            extra={"context": context, "market_id": market_id}
        )
        await self.event_bus.emit(
            MonitoringEventType.MONITORING_ERROR,
            ErrorPayload(error=str(error), context=context, market_id=market_id)
        )

    def get_markets(self) -> list[Market]:
        return list(self._markets.values())

    def get_market(self, market_id: str) -> Optional[Market]:
        return self._markets.get(market_id)

    def get_prices(self, market_id: str) -> Optional[list[PriceQuote]]:
        prices = self._prices.get(market_id)
        return list(prices) if prices is not None else None

    def get_all_prices(self) -> dict[str, list[PriceQuote]]:
        return {market_id: list(prices) for market_id, prices in self._prices.items()}

    async def get_trending_markets(self, limit: int = 20) -> list[Market]:
        try:
            return await self.client.get_trending_markets(limit=limit)
        except Exception as e:
            logger.error(f"Failed to fetch trending markets: {e}")
            return []
