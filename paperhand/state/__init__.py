"""
State records for the paper-hand settlement engine
"""

from .config import Configuration
from .exchange import ExchangeState
from .lp import LPTable
from .pools import LiquidityPool
from .positions import PositionTable, UserPosition
from .treasury import Treasury

__all__ = [
    "Configuration",
    "ExchangeState",
    "LPTable",
    "LiquidityPool",
    "PositionTable",
    "UserPosition",
    "Treasury",
]
