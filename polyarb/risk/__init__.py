# Risk management
from .manager import RiskManager, RiskLimits, RiskCheckResult

__all__ = ["RiskManager", "RiskLimits", "RiskCheckResult"]
