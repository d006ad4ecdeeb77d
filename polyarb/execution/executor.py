"""
Trade execution engine for arbitrage opportunities.
Synthesizes trade legs, submits them with bounded retries and tracks their state.
"""

import asyncio
from typing import Optional
import time
import uuid

from ..models import ArbitrageOpportunity, ArbitrageType, Trade, TradeSide, TradeStatus, utc_now
from ..risk.manager import RiskManager
from ..utils.logger import get_logger, TradeLogger
from .submitter import OrderSubmitter, SubmissionResult

logger = get_logger("executor")
trade_logger = TradeLogger()


class TradeExecutor:
    """
    Converts admitted opportunities into trade legs and submits them.

    Key responsibilities:
    - Dry-run synthetic trades while trading is disabled
    - Reject expired opportunities and enforce the pending-trade ceiling
    - Build legs per strategy and submit them (parallel where independent)
    - Retry failed legs with exponential backoff up to max_retries
    - Record executed fills in the risk ledger
    """

    def __init__(
        self,
        submitter: OrderSubmitter,
        risk_manager: Optional[RiskManager] = None,
        trading_enabled: bool = False,
        max_retries: int = 3,
        max_pending_trades: int = 10,
        retry_delay_seconds: float = 0.5
    ):
        """
        Initialize trade executor.

        Args:
            submitter: Backend that submits individual legs
            risk_manager: Ledger that receives fills (optional)
            trading_enabled: When False every opportunity is a dry run
            max_retries: Retries per leg after the first failed attempt
            max_pending_trades: Ceiling on legs awaiting a final status
            retry_delay_seconds: Base delay, doubled on each retry
        """
        self.submitter = submitter
        self.risk_manager = risk_manager
        self.trading_enabled = trading_enabled
        self.max_retries = max_retries
        self.max_pending_trades = max_pending_trades
        self.retry_delay_seconds = retry_delay_seconds

        self._pending_trades: dict[str, Trade] = {}
        self._completed_trades: list[Trade] = []
        self._retry_counts: dict[str, int] = {}

        # Lock for pending/completed bookkeeping
        self._lock = asyncio.Lock()

    async def execute(
        self,
        opportunity: ArbitrageOpportunity,
        amount: Optional[float] = None
    ) -> list[Trade]:
        """
        Execute an arbitrage opportunity.

        Args:
            opportunity: Admitted opportunity
            amount: USDC to commit, defaults to the opportunity's required capital

        Returns:
            Resulting trades (legs), empty if the opportunity was rejected
        """
        if amount is None:
            amount = opportunity.required_capital

        if not self.trading_enabled:
            return [self._dry_run(opportunity, amount)]

        if opportunity.is_expired():
            logger.warning(
                "Opportunity expired, skipping execution",
                extra={"opportunity_id": opportunity.id, "market_id": opportunity.market_id}
            )
            return []

        legs = self._create_legs(opportunity, amount)
        if not legs:
            return []

        async with self._lock:
            if len(self._pending_trades) + len(legs) > self.max_pending_trades:
                logger.warning(
                    "Max pending trades reached, rejecting opportunity",
                    extra={
                        "opportunity_id": opportunity.id,
                        "pending": len(self._pending_trades),
                        "legs": len(legs)
                    }
                )
                return []
            for leg in legs:
                self._pending_trades[leg.id] = leg

        logger.info(
            f"Executing {opportunity.type.value} opportunity with {len(legs)} legs",
            extra={"opportunity_id": opportunity.id, "market_id": opportunity.market_id, "amount": amount}
        )

        if opportunity.type == ArbitrageType.MISPRICING:
            # Sell only what was actually bought
            buy_leg, sell_leg = legs
            await self._submit_with_retry(buy_leg)
            if buy_leg.status == TradeStatus.EXECUTED:
                await self._submit_with_retry(sell_leg)
            else:
                await self._cancel(sell_leg, reason="Buy leg did not execute")
        else:
            await asyncio.gather(*(self._submit_with_retry(leg) for leg in legs))

        if all(leg.status == TradeStatus.EXECUTED for leg in legs):
            legs[-1].realized_profit = amount * opportunity.profit_percentage

        return legs

    def _dry_run(self, opportunity: ArbitrageOpportunity, amount: float) -> Trade:
        """Synthetic executed trade describing what would have happened."""
        if opportunity.buy_outcome != "none":
            outcome, side, price = opportunity.buy_outcome, TradeSide.BUY, opportunity.buy_price
        else:
            outcome, side, price = opportunity.sell_outcome, TradeSide.SELL, opportunity.sell_price

        now = utc_now()
        trade = Trade(
            id=_new_trade_id(),
            market_id=opportunity.market_id,
            outcome=outcome,
            side=side,
            amount=amount,
            price=price,
            status=TradeStatus.EXECUTED,
            created_at=now,
            executed_at=now,
            realized_profit=amount * opportunity.profit_percentage,
            opportunity_id=opportunity.id,
            dry_run=True
        )

        trade_logger.dry_run_trade(
            trade_id=trade.id,
            market_id=trade.market_id,
            arb_type=opportunity.type.value,
            amount=amount,
            price=price,
            expected_profit=trade.realized_profit
        )
        return trade

    def _create_legs(self, opportunity: ArbitrageOpportunity, amount: float) -> list[Trade]:
        """Create trade legs from an opportunity."""
        quotes = opportunity.quotes
        if not quotes:
            logger.warning(f"Opportunity {opportunity.id} carries no quotes")
            return []

        def leg(outcome: str, side: TradeSide, leg_amount: float, price: float) -> Trade:
            return Trade(
                id=_new_trade_id(),
                market_id=opportunity.market_id,
                outcome=outcome,
                side=side,
                amount=leg_amount,
                price=price,
                opportunity_id=opportunity.id
            )

        if opportunity.type == ArbitrageType.COMPLEMENTARY:
            # Buy every outcome, capital split evenly
            share = amount / len(quotes)
            return [leg(q.outcome, TradeSide.BUY, share, q.ask_price) for q in quotes]

        if opportunity.type == ArbitrageType.MISPRICING:
            quote = quotes[0]
            # Same share count on both sides: notional scales with price
            sell_amount = amount * quote.bid_price / quote.ask_price
            return [
                leg(quote.outcome, TradeSide.BUY, amount, quote.ask_price),
                leg(quote.outcome, TradeSide.SELL, sell_amount, quote.bid_price),
            ]

        if opportunity.type == ArbitrageType.TEMPORAL:
            # Sell every outcome, capital split evenly
            share = amount / len(quotes)
            return [leg(q.outcome, TradeSide.SELL, share, q.bid_price) for q in quotes]

        logger.warning(f"Unsupported opportunity type: {opportunity.type.value}")
        return []

    async def _submit_with_retry(self, trade: Trade) -> Trade:
        """Submit one leg until it executes, exhausts its retries or is cancelled."""
        while True:
            if trade.status != TradeStatus.PENDING:
                return trade

            attempt = self._retry_counts.get(trade.id, 0) + 1
            trade_logger.trade_submitted(
                trade_id=trade.id,
                market_id=trade.market_id,
                side=trade.side.value,
                amount=trade.amount,
                price=trade.price,
                attempt=attempt
            )

            start_time = time.time()
            try:
                result = await self.submitter.submit(trade)
            except Exception as e:
                result = SubmissionResult(success=False, error=str(e) or type(e).__name__)

            if trade.status != TradeStatus.PENDING:
                # Cancelled while the attempt was in flight
                logger.warning(
                    f"Trade {trade.id} finalized during submission",
                    extra={"trade_id": trade.id, "status": trade.status.value}
                )
                return trade

            if result.success:
                if not await self._finalize(trade, TradeStatus.EXECUTED, tx_ref=result.tx_ref):
                    return trade
                self._record_fill(trade)
                trade_logger.trade_executed(
                    trade_id=trade.id,
                    market_id=trade.market_id,
                    tx_ref=result.tx_ref,
                    latency_ms=(time.time() - start_time) * 1000
                )
                return trade

            retries = self._retry_counts.get(trade.id, 0)
            if retries >= self.max_retries:
                if not await self._finalize(trade, TradeStatus.FAILED, error=result.error):
                    return trade
                trade_logger.trade_failed(
                    trade_id=trade.id,
                    market_id=trade.market_id,
                    reason=f"Failed after {retries + 1} attempts",
                    error=result.error
                )
                return trade

            self._retry_counts[trade.id] = retries + 1
            delay = self.retry_delay_seconds * (2 ** retries)
            logger.warning(
                f"Trade attempt {attempt} failed, retrying in {delay:.2f}s",
                extra={"trade_id": trade.id, "error": result.error}
            )
            if delay > 0:
                await asyncio.sleep(delay)

    async def _finalize(
        self,
        trade: Trade,
        status: TradeStatus,
        tx_ref: Optional[str] = None,
        error: Optional[str] = None
    ) -> bool:
        """Move a pending trade to a final status. False if it was already final."""
        async with self._lock:
            if trade.status.is_final:
                return False
            self._pending_trades.pop(trade.id, None)
            trade.status = status
            if status == TradeStatus.EXECUTED:
                trade.executed_at = utc_now()
                trade.tx_ref = tx_ref
            if error:
                trade.error = error
            self._completed_trades.append(trade)
            return True

    def _record_fill(self, trade: Trade) -> None:
        if self.risk_manager is None:
            return
        quantity = trade.quantity if trade.side == TradeSide.BUY else -trade.quantity
        self.risk_manager.record_fill(trade.market_id, trade.outcome, quantity, trade.price)

    async def _cancel(self, trade: Trade, reason: Optional[str] = None) -> bool:
        if not await self._finalize(trade, TradeStatus.CANCELLED, error=reason):
            return False
        trade_logger.trade_cancelled(trade_id=trade.id, market_id=trade.market_id)
        return True

    async def cancel_trade(self, trade_id: str) -> bool:
        """
        Cancel a pending trade.

        Returns:
            True if the trade was pending and is now cancelled, False if it is
            unknown or already final
        """
        trade = self._pending_trades.get(trade_id)
        if trade is None or trade.status != TradeStatus.PENDING:
            logger.info(f"Trade {trade_id} is not pending, nothing to cancel")
            return False

        return await self._cancel(trade)

    async def cancel_all_pending(self) -> int:
        """Cancel all pending trades."""
        cancelled = 0
        for trade_id in list(self._pending_trades):
            if await self.cancel_trade(trade_id):
                cancelled += 1
        return cancelled

    def get_pending_trades(self) -> list[Trade]:
        return list(self._pending_trades.values())

    def get_completed_trades(self, limit: int = 100) -> list[Trade]:
        return self._completed_trades[-limit:]

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        """Get trade by ID."""
        if trade_id in self._pending_trades:
            return self._pending_trades[trade_id]

        for trade in self._completed_trades:
            if trade.id == trade_id:
                return trade

        return None

    def get_trades_for_market(self, market_id: str) -> list[Trade]:
        trades = list(self._pending_trades.values()) + self._completed_trades
        return [t for t in trades if t.market_id == market_id]

    def get_retry_count(self, trade_id: str) -> int:
        return self._retry_counts.get(trade_id, 0)

    def get_total_profit(self) -> float:
        """Sum of realized profit over executed trades that recorded one."""
        return sum(
            t.realized_profit for t in self._completed_trades
            if t.status == TradeStatus.EXECUTED and t.realized_profit is not None
        )

    def get_success_rate(self) -> float:
        """Executed trades as a fraction of all completed trades."""
        if not self._completed_trades:
            return 0.0
        executed = sum(1 for t in self._completed_trades if t.status == TradeStatus.EXECUTED)
        return executed / len(self._completed_trades)


def _new_trade_id() -> str:
    return str(uuid.uuid4())[:8]
