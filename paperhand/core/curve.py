"""
Constant-product bonding curve with deterministic rounding.

Algorithm Design:
- Type: Fixed-Point Integer Arithmetic / Deterministic Rounding
- Time Complexity: O(1) per swap
- Invariant: new_reserve_in * new_reserve_out >= reserve_in * reserve_out

Formula:
    adjusted_in = floor(amount_in * (100 - fee_rate) / 100)
    amount_out  = floor(reserve_out * adjusted_in / (reserve_in + adjusted_in))

Post-swap reserves:
    new_reserve_in  = reserve_in + amount_in   (fee stays in the pool)
    new_reserve_out = reserve_out - amount_out
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InsufficientLiquidity, InsufficientOutput, InvariantViolation
from ..state.config import BPS_DENOM, FeeRate, fee_rate_to_bps
from .math import checked_add, checked_sub, mul_div_floor, require_amount


@dataclass(frozen=True)
class SwapResult:
    amount_in: int
    adjusted_in: int
    fee_retained: int
    amount_out: int
    new_reserve_in: int
    new_reserve_out: int
    k_before: int
    k_after: int


def adjusted_input(amount_in: int, fee_bps: int) -> int:
    """Input left after the fee: ``floor(amount_in * (10_000 - fee_bps) / 10_000)``."""
    if not (0 <= fee_bps <= BPS_DENOM):
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOM}]: {fee_bps}")
    return mul_div_floor(amount_in, BPS_DENOM - fee_bps, BPS_DENOM)


def swap_exact_in(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_rate: FeeRate,
) -> SwapResult:
    """
    Exact-in swap quote + post-state.

    Args:
        amount_in: Gross input amount (fee-inclusive)
        reserve_in: Current reserve of the input side
        reserve_out: Current reserve of the output side
        fee_rate: Fee percentage (1 means 1%)

    Raises:
        InvalidAmount: amount_in is not a positive u64
        InsufficientLiquidity: either reserve is zero
        InsufficientOutput: output rounds down to zero
        ArithmeticOverflow: new_reserve_in leaves the u64 domain
    """
    amount_in = require_amount("amount_in", amount_in)
    fee_bps = fee_rate_to_bps(fee_rate)
    if reserve_in < 0 or reserve_out < 0:
        raise InsufficientLiquidity(f"reserves must be non-negative: ({reserve_in}, {reserve_out})")
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("cannot swap against an empty reserve")

    adjusted_in = adjusted_input(amount_in, fee_bps)
    amount_out = mul_div_floor(reserve_out, adjusted_in, reserve_in + adjusted_in)

    if amount_out <= 0:
        raise InsufficientOutput(f"amount_out is zero (amount_in={amount_in} too small)")
    if amount_out >= reserve_out:
        raise InsufficientLiquidity("swap would drain the output reserve")

    new_reserve_in = checked_add(reserve_in, amount_in, what="reserve_in")
    new_reserve_out = checked_sub(reserve_out, amount_out, what="reserve_out")

    k_before = reserve_in * reserve_out
    k_after = new_reserve_in * new_reserve_out
    if k_after < k_before:
        raise InvariantViolation(["inv_k_non_decreasing"])

    return SwapResult(
        amount_in=amount_in,
        adjusted_in=adjusted_in,
        fee_retained=amount_in - adjusted_in,
        amount_out=amount_out,
        new_reserve_in=new_reserve_in,
        new_reserve_out=new_reserve_out,
        k_before=k_before,
        k_after=k_after,
    )


def swap_output(amount_in: int, reserve_in: int, reserve_out: int, fee_rate: FeeRate) -> int:
    """Output amount of an exact-in swap; see `swap_exact_in` for failures."""
    return swap_exact_in(amount_in, reserve_in, reserve_out, fee_rate).amount_out
