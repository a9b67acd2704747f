"""Database model exports."""

from .raw import CustomerSnapshot, SubAccount, TradingTick
from .report import DailyPLRecord

__all__ = [
    "TradingTick",
    "SubAccount",
    "CustomerSnapshot",
    "DailyPLRecord",
]
