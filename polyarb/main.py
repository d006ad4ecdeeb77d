"""
Main entry point for the Polymarket arbitrage bot.
Wires all components together and runs the event loop.
"""

import asyncio
import signal
import sys
from typing import Optional

import uvicorn

from .api.server import create_app
from .arbitrage.detector import ArbitrageDetector
from .clients import create_exchange_client
from .config import Config, load_config, validate_config
from .exceptions import ConfigurationError
from .execution.executor import TradeExecutor
from .execution.submitter import SimulatedOrderSubmitter
from .monitoring.events import EventBus
from .monitoring.monitor import MarketMonitor
from .monitoring.state_tracker import MarketStateTracker
from .monitoring.stats import MonitoringStats
from .risk.manager import RiskLimits, RiskManager
from .utils.logger import get_logger, setup_logging

logger = get_logger("main")


class ArbitrageBot:
    """
    Main bot orchestrator.

    Coordinates:
    - Market polling and state tracking
    - Arbitrage detection
    - Risk admission and position ledger
    - Trade execution (dry run unless trading is enabled)
    - Status API server
    """

    def __init__(self, config: Config):
        """Initialize bot with configuration."""
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._server: Optional[uvicorn.Server] = None
        self._server_task: Optional[asyncio.Task] = None

        self.client = create_exchange_client(config)
        self.state_tracker = MarketStateTracker(max_history_length=config.monitoring.history_length)

        self.detector = ArbitrageDetector(
            min_profit_threshold=config.trading.min_profit_threshold,
            min_confidence=config.risk.min_confidence,
            max_slippage=config.risk.max_slippage,
            max_position_size=config.trading.max_position_size,
            dedup_ttl_seconds=config.monitoring.opportunity_ttl_seconds
        )

        self.risk_manager = RiskManager(RiskLimits(
            max_position_size=config.trading.max_position_size,
            max_total_exposure=config.trading.max_total_exposure,
            min_profit_threshold=config.trading.min_profit_threshold,
            default_position_size=config.trading.default_position_size
        ))

        self.executor = TradeExecutor(
            submitter=SimulatedOrderSubmitter(),
            risk_manager=self.risk_manager,
            trading_enabled=config.trading.enabled,
            max_retries=config.trading.max_retries,
            max_pending_trades=config.trading.max_pending_trades,
            retry_delay_seconds=config.trading.retry_delay_seconds
        )

        self.event_bus = EventBus()
        self.stats = MonitoringStats()

        self.monitor = MarketMonitor(
            client=self.client,
            state_tracker=self.state_tracker,
            detector=self.detector,
            risk_manager=self.risk_manager,
            executor=self.executor,
            event_bus=self.event_bus,
            stats=self.stats,
            poll_interval_seconds=config.monitoring.poll_interval_seconds,
            market_limit=config.monitoring.market_limit,
            min_liquidity=config.monitoring.min_liquidity,
            price_spike_threshold=config.monitoring.price_spike_threshold
        )

    async def initialize(self) -> None:
        """Initialize exchange connectivity."""
        logger.info(
            "Initializing Polymarket arbitrage bot",
            extra={
                "trading_enabled": self.config.trading.enabled,
                "mock_mode": self.config.exchange.use_mock
            }
        )

        if not self.config.trading.enabled:
            logger.warning("Trading is disabled - opportunities will be logged as dry runs")

        await self.client.initialize()

        if not await self.client.health_check():
            logger.warning("Exchange health check failed, continuing anyway")

        logger.info("Bot initialized successfully")

    async def run(self) -> None:
        """Run until shutdown is requested."""
        self._running = True
        logger.info("Starting Polymarket arbitrage bot")

        await self.monitor.start()

        if self.config.server.enabled:
            self._start_server()

        try:
            await asyncio.gather(
                self._run_stats_reporter(),
                self._wait_for_shutdown()
            )
        finally:
            self._running = False

    def _start_server(self) -> None:
        server_config = uvicorn.Config(
            create_app(self),
            host=self.config.server.host,
            port=self.config.server.port,
            log_level=self.config.logging.log_level.lower()
        )
        self._server = uvicorn.Server(server_config)
        self._server_task = asyncio.create_task(self._server.serve())
        logger.info(
            "Status server started",
            extra={"host": self.config.server.host, "port": self.config.server.port}
        )

    async def _run_stats_reporter(self) -> None:
        """Periodically report statistics."""
        interval = self.config.monitoring.stats_interval_seconds
        while self._running and not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                self._log_stats()

    async def _wait_for_shutdown(self) -> None:
        """Wait for shutdown signal."""
        await self._shutdown_event.wait()
        self._running = False

    def _log_stats(self) -> None:
        """Log current statistics."""
        self.stats.log_statistics()
        detector_stats = self.detector.get_stats()

        logger.info(
            "Bot statistics",
            extra={
                "opportunities_detected": detector_stats.opportunities_detected,
                "scans": detector_stats.scans,
                "pending_trades": len(self.executor.get_pending_trades()),
                "success_rate": self.executor.get_success_rate(),
                "total_profit": self.executor.get_total_profit(),
                "total_exposure": self.risk_manager.get_total_exposure()
            }
        )

    async def shutdown(self) -> None:
        """Gracefully shutdown the bot."""
        logger.info("Shutting down bot")
        self._running = False

        await self.monitor.stop()

        cancelled = await self.executor.cancel_all_pending()
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending trades")

        if self._server:
            self._server.should_exit = True
        if self._server_task:
            await self._server_task
            self._server_task = None
            self._server = None

        await self.client.close()

        self._log_stats()
        logger.info("Bot shutdown complete")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def setup_signal_handlers(bot: ArbitrageBot) -> None:
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        bot.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def run_bot(config: Config) -> None:
    """Create and run a bot until shutdown."""
    bot = ArbitrageBot(config)
    setup_signal_handlers(bot)

    try:
        await bot.initialize()
        await bot.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        await bot.shutdown()


def main() -> None:
    """Console entry point."""
    try:
        config = load_config()
        validate_config(config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(
        level=config.logging.log_level,
        json_format=config.logging.json_logging
    )

    asyncio.run(run_bot(config))


if __name__ == "__main__":
    main()
