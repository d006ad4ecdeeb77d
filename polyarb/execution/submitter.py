"""
Order submission backends for the trade executor.

No exchange order placement is wired in: live mode submits through
SimulatedOrderSubmitter, which models latency and random fills.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import uuid

from ..exceptions import SubmissionError
from ..models import Trade
from ..utils.logger import get_logger

logger = get_logger("submitter")


@dataclass
class SubmissionResult:
    """Outcome of one submission attempt."""
    success: bool
    tx_ref: Optional[str] = None
    error: Optional[str] = None


class OrderSubmitter(ABC):
    """Submits a single trade leg. May raise; a raise counts as a failure."""

    @abstractmethod
    async def submit(self, trade: Trade) -> SubmissionResult:
        ...


class SimulatedOrderSubmitter(OrderSubmitter):
    """
    Simulated execution with network latency and non-deterministic fills.

    Stands in for a real exchange integration; it does not model order
    books, partial fills or settlement.
    """

    def __init__(
        self,
        success_rate: float = 0.9,
        min_latency_seconds: float = 0.05,
        max_latency_seconds: float = 0.25,
        seed: Optional[int] = None
    ):
        """
        Args:
            success_rate: Probability that an attempt fills
            min_latency_seconds: Lower bound of simulated round trip
            max_latency_seconds: Upper bound of simulated round trip
            seed: Seed for reproducible runs
        """
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self.min_latency_seconds = min_latency_seconds
        self.max_latency_seconds = max(min_latency_seconds, max_latency_seconds)
        self._rng = random.Random(seed)
        self.submissions = 0

    async def submit(self, trade: Trade) -> SubmissionResult:
        if trade.amount <= 0 or trade.price <= 0:
            raise SubmissionError(f"Invalid order for trade {trade.id}: amount={trade.amount}, price={trade.price}")
        self.submissions += 1
        latency = self._rng.uniform(self.min_latency_seconds, self.max_latency_seconds)
        if latency > 0:
            await asyncio.sleep(latency)

        if self._rng.random() < self.success_rate:
            return SubmissionResult(success=True, tx_ref=f"sim-{uuid.uuid4().hex[:16]}")

        logger.debug(f"Simulated rejection for trade {trade.id}")
        return SubmissionResult(success=False, error="Simulated order rejection")
