"""Checked integer arithmetic for the settlement engine.

Every function is stateless and operates on plain Python ints. Python ints
are unbounded, so intermediate products never wrap; the u64 domain of
persisted amounts is enforced explicitly on results instead.

Rounding is floor (`//`) throughout, which always favors the pool and the
treasury over the trader.
"""

from __future__ import annotations

from ..errors import ArithmeticOverflow, InvalidAmount
from ..state.amounts import U64_MAX
from ..state.config import BPS_DENOM


def require_amount(name: str, value: object) -> int:
    """Validate a caller-supplied amount: int in [1, U64_MAX]."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidAmount(f"{name} must be an int, got {type(value).__name__}")
    if value <= 0:
        raise InvalidAmount(f"{name} must be positive: {value}")
    if value > U64_MAX:
        raise InvalidAmount(f"{name} exceeds u64 range: {value}")
    return value


def checked_add(a: int, b: int, *, what: str) -> int:
    total = a + b
    if total > U64_MAX:
        raise ArithmeticOverflow(f"{what} overflows u64: {a} + {b}")
    return total


def checked_sub(a: int, b: int, *, what: str) -> int:
    diff = a - b
    if diff < 0:
        raise ArithmeticOverflow(f"{what} underflows: {a} - {b}")
    return diff


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    """``floor(a * b / denominator)`` for non-negative operands."""
    if denominator <= 0:
        raise ArithmeticOverflow("denominator must be positive")
    if a < 0 or b < 0:
        raise ArithmeticOverflow("operands must be non-negative")
    return (a * b) // denominator


def apply_bps(amount: int, bps: int) -> int:
    """``floor(amount * bps / 10_000)``."""
    return mul_div_floor(amount, bps, BPS_DENOM)
