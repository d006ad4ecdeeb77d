"""
Structured logging for the arbitrage monitor.
Supports JSON logging for log aggregation.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

ROOT_LOGGER = "polyarb"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['timestamp'] = self.formatTime(record, self.datefmt)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    logger_name: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Whether to emit one JSON object per line
        logger_name: Optional specific logger name

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name or ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers = []

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = CustomJsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger with the given name."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


class TradeLogger:
    """Specialized logger for opportunity and trade lifecycle events."""

    def __init__(self):
        self.logger = get_logger("trades")

    def opportunity_detected(
        self,
        opportunity_id: str,
        market_id: str,
        arb_type: str,
        profit_percentage: float,
        confidence: float,
        risk_score: float
    ):
        """Log when an arbitrage opportunity passes all filters."""
        self.logger.info(
            "Arbitrage opportunity detected",
            extra={
                "event": "opportunity_detected",
                "opportunity_id": opportunity_id,
                "market_id": market_id,
                "arb_type": arb_type,
                "profit_percentage": profit_percentage,
                "confidence": confidence,
                "risk_score": risk_score
            }
        )

    def trade_submitted(
        self,
        trade_id: str,
        market_id: str,
        side: str,
        amount: float,
        price: float,
        attempt: int
    ):
        """Log each submission attempt of a trade leg."""
        self.logger.info(
            "Trade submitted",
            extra={
                "event": "trade_submitted",
                "trade_id": trade_id,
                "market_id": market_id,
                "side": side,
                "amount": amount,
                "price": price,
                "attempt": attempt
            }
        )

    def trade_executed(
        self,
        trade_id: str,
        market_id: str,
        tx_ref: Optional[str],
        latency_ms: float
    ):
        """Log when a trade leg is executed."""
        self.logger.info(
            "Trade executed",
            extra={
                "event": "trade_executed",
                "trade_id": trade_id,
                "market_id": market_id,
                "tx_ref": tx_ref,
                "latency_ms": latency_ms
            }
        )

    def trade_failed(
        self,
        trade_id: str,
        market_id: str,
        reason: str,
        error: Optional[str] = None
    ):
        """Log when a trade fails for good."""
        self.logger.error(
            "Trade failed",
            extra={
                "event": "trade_failed",
                "trade_id": trade_id,
                "market_id": market_id,
                "reason": reason,
                "error": error
            }
        )

    def trade_cancelled(self, trade_id: str, market_id: str):
        """Log when a pending trade is cancelled."""
        self.logger.info(
            "Trade cancelled",
            extra={
                "event": "trade_cancelled",
                "trade_id": trade_id,
                "market_id": market_id
            }
        )

    def dry_run_trade(
        self,
        trade_id: str,
        market_id: str,
        arb_type: str,
        amount: float,
        price: float,
        expected_profit: float
    ):
        """Log what would have been traded with trading disabled."""
        self.logger.info(
            "[DRY RUN] Would execute trade",
            extra={
                "event": "dry_run_trade",
                "trade_id": trade_id,
                "market_id": market_id,
                "arb_type": arb_type,
                "amount": amount,
                "price": price,
                "expected_profit_usd": expected_profit
            }
        )
