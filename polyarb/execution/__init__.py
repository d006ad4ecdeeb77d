# Trade execution
from .executor import TradeExecutor
from .submitter import OrderSubmitter, SimulatedOrderSubmitter, SubmissionResult

__all__ = ["TradeExecutor", "OrderSubmitter", "SimulatedOrderSubmitter", "SubmissionResult"]
