"""
Settlement engine core: pricing, cost basis, loss tax and the step dispatcher.

Public API:
- `buy / sell / add_liquidity / update_config -> (ExchangeState, result)`
- `initialize_config(...) -> ExchangeState`
- `step(state, command) -> StepResult`
- `step_or_raise(state, command) -> StepResult` (raises on rejection)
- `quote_buy / quote_sell / value_position` (read-only previews)
"""

from .curve import SwapResult, swap_exact_in, swap_output
from .engine import (
    add_liquidity,
    buy,
    initialize_config,
    sell,
    step,
    step_or_raise,
    update_config,
)
from .invariants import check_all, require_invariants
from .quotes import BuyQuote, PositionValuation, SellQuote, quote_buy, quote_sell, value_position
from .types import (
    Action,
    BuyResult,
    Command,
    ConfigResult,
    Event,
    LiquidityResult,
    SellResult,
    StepResult,
)

__all__ = [
    "SwapResult",
    "swap_exact_in",
    "swap_output",
    "add_liquidity",
    "buy",
    "initialize_config",
    "sell",
    "step",
    "step_or_raise",
    "update_config",
    "check_all",
    "require_invariants",
    "BuyQuote",
    "PositionValuation",
    "SellQuote",
    "quote_buy",
    "quote_sell",
    "value_position",
    "Action",
    "BuyResult",
    "Command",
    "ConfigResult",
    "Event",
    "LiquidityResult",
    "SellResult",
    "StepResult",
]
