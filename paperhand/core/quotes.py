"""Read-only trade previews and position valuation.

`quote_buy` and `quote_sell` compute exactly what `engine.buy` / `engine.sell`
will do (the engine is built on them) but only return the would-be records;
nothing is committed. `value_position` prices a whole position at the
current reserves for display layers.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from fractions import Fraction
from typing import Optional

from ..errors import InsufficientLiquidity, InsufficientOutput
from ..state.config import Configuration, FeeRate
from ..state.pools import LiquidityPool
from ..state.positions import UserPosition
from .curve import SwapResult, swap_exact_in
from .ledger import cost_basis_for_sale, record_sell, require_sellable
from .tax import TaxAssessment, assess_sale


@dataclass(frozen=True)
class BuyQuote:
    swap: SwapResult
    pool_after: LiquidityPool

    @property
    def tokens_out(self) -> int:
        return self.swap.amount_out


@dataclass(frozen=True)
class SellQuote:
    swap: SwapResult
    assessment: TaxAssessment
    pool_after: LiquidityPool
    position_after: UserPosition

    @property
    def sol_out(self) -> int:
        return self.assessment.sol_out

    @property
    def cost_basis(self) -> int:
        return self.assessment.cost_basis

    @property
    def is_loss(self) -> bool:
        return self.assessment.is_loss

    @property
    def tax(self) -> int:
        return self.assessment.tax

    @property
    def net_out(self) -> int:
        return self.assessment.net_out


@dataclass(frozen=True)
class PositionValuation:
    total_tokens: int
    total_cost: int
    average_cost: Optional[Fraction]
    spot_price: Optional[Fraction]
    exit_value: int
    unrealized_pnl: int
    exit_is_loss: bool
    exit_tax: int


def quote_buy(pool: LiquidityPool, amount_in: int, fee_rate: FeeRate) -> BuyQuote:
    """Tokens received for `amount_in` base currency, and the pool afterwards."""
    swap = swap_exact_in(amount_in, pool.reserve_base, pool.reserve_token, fee_rate)
    pool_after = replace(pool, reserve_base=swap.new_reserve_in, reserve_token=swap.new_reserve_out)
    return BuyQuote(swap=swap, pool_after=pool_after)


def _require_same_pool(pool: LiquidityPool, position: Optional[UserPosition]) -> None:
    if position is not None and position.pool != pool.token_mint:
        raise ValueError(f"position belongs to pool {position.pool}, not {pool.token_mint}")


def quote_sell(
    pool: LiquidityPool,
    position: Optional[UserPosition],
    tokens_in: int,
    config: Configuration,
) -> SellQuote:
    """Proceeds, cost basis and loss tax of selling `tokens_in` from `position`."""
    _require_same_pool(pool, position)
    position = require_sellable(position, tokens_in)
    swap = swap_exact_in(tokens_in, pool.reserve_token, pool.reserve_base, config.fee_rate)
    cost_basis = cost_basis_for_sale(position, tokens_in)
    assessment = assess_sale(swap.amount_out, cost_basis, config.loss_tax_bps)
    pool_after = replace(pool, reserve_token=swap.new_reserve_in, reserve_base=swap.new_reserve_out)
    position_after = record_sell(position, tokens_in=tokens_in, cost_basis=cost_basis)
    return SellQuote(
        swap=swap,
        assessment=assessment,
        pool_after=pool_after,
        position_after=position_after,
    )


def value_position(
    pool: LiquidityPool,
    position: Optional[UserPosition],
    config: Configuration,
) -> PositionValuation:
    """
    Mark a position to the pool.

    `exit_value` is the pre-tax proceeds of selling the whole position now,
    or 0 when the pool cannot quote that sale.
    """
    _require_same_pool(pool, position)
    spot = pool.spot_price()
    if position is None or not position.is_open:
        return PositionValuation(
            total_tokens=0,
            total_cost=0,
            average_cost=None,
            spot_price=spot,
            exit_value=0,
            unrealized_pnl=0,
            exit_is_loss=False,
            exit_tax=0,
        )

    try:
        quote = quote_sell(pool, position, position.total_tokens, config)
    except (InsufficientLiquidity, InsufficientOutput):
        exit_value, exit_is_loss, exit_tax = 0, True, 0
    else:
        exit_value, exit_is_loss, exit_tax = quote.sol_out, quote.is_loss, quote.tax

    return PositionValuation(
        total_tokens=position.total_tokens,
        total_cost=position.total_cost,
        average_cost=position.average_cost,
        spot_price=spot,
        exit_value=exit_value,
        unrealized_pnl=exit_value - position.total_cost,
        exit_is_loss=exit_is_loss,
        exit_tax=exit_tax,
    )
