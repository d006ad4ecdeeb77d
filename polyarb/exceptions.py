"""
Exception hierarchy for the arbitrage monitor.
"""

from typing import Optional


class PolyarbError(Exception):
    """Base class for all bot errors."""


class ConfigurationError(PolyarbError):
    """Invalid or unsafe configuration. Fatal at startup."""


class ExchangeError(PolyarbError):
    """Exchange API call failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MarketNotFoundError(ExchangeError):
    """Requested market does not exist on the exchange."""

    def __init__(self, market_id: str):
        super().__init__(f"Market not found: {market_id}", status=404)
        self.market_id = market_id


class SubmissionError(PolyarbError):
    """A trade leg could not be submitted."""
