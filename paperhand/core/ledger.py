"""Weighted-average cost-basis ledger.

A position is a single blended ``(total_tokens, total_cost)`` pair. A sale
removes a pro-rata slice of cost:

    cost_basis = floor(total_cost * tokens_in / total_tokens)

There is no lot selection (FIFO/LIFO). A full exit always resets the position
to ``(0, 0)`` even if truncation left cost behind.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ..errors import InsufficientPosition
from ..state.amounts import AccountId
from ..state.positions import UserPosition
from .math import checked_add, checked_sub, mul_div_floor, require_amount


def open_position(pool: AccountId, owner: AccountId) -> UserPosition:
    """Flat position used when a wallet buys for the first time."""
    return UserPosition(pool=pool, owner=owner)


def require_sellable(position: Optional[UserPosition], tokens_in: int) -> UserPosition:
    tokens_in = require_amount("tokens_in", tokens_in)
    if position is None or not position.is_open:
        raise InsufficientPosition("no tracked position to sell from")
    if tokens_in > position.total_tokens:
        raise InsufficientPosition(
            f"tokens_in ({tokens_in}) exceeds tracked position ({position.total_tokens})"
        )
    return position


def cost_basis_for_sale(position: UserPosition, tokens_in: int) -> int:
    """Pro-rata share of ``total_cost`` attributable to ``tokens_in``."""
    require_sellable(position, tokens_in)
    return mul_div_floor(position.total_cost, tokens_in, position.total_tokens)


def record_buy(position: UserPosition, *, tokens_out: int, amount_in: int) -> UserPosition:
    """Add a purchase at its gross (fee-inclusive) cost."""
    return replace(
        position,
        total_tokens=checked_add(position.total_tokens, tokens_out, what="total_tokens"),
        total_cost=checked_add(position.total_cost, amount_in, what="total_cost"),
    )


def record_sell(position: UserPosition, *, tokens_in: int, cost_basis: int) -> UserPosition:
    """Remove sold tokens and their cost basis; a full exit clears residual cost."""
    total_tokens = checked_sub(position.total_tokens, tokens_in, what="total_tokens")
    if total_tokens == 0:
        return replace(position, total_tokens=0, total_cost=0)
    total_cost = checked_sub(position.total_cost, cost_basis, what="total_cost")
    return replace(position, total_tokens=total_tokens, total_cost=total_cost)
