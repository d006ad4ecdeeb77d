# Utilities
from .logger import setup_logging, get_logger, TradeLogger

__all__ = ["setup_logging", "get_logger", "TradeLogger"]
