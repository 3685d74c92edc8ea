"""
Bonding-curve pool state.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

from .amounts import AccountId, Amount, require_u64
from .canonical import canonical_id


@dataclass(frozen=True)
class LiquidityPool:
    """
    Reserves of a single token/base-currency pool.

    Attributes:
        token_mint: Identity of the traded token (also the pool key)
        reserve_token: Token units held by the pool
        reserve_base: Base-currency units held by the pool
        total_issued: Token supply routed into the pool via liquidity deposits
    """
    token_mint: AccountId
    reserve_token: Amount
    reserve_base: Amount
    total_issued: Amount = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "token_mint", canonical_id(self.token_mint, name="token_mint"))
        for name, v in (
            ("reserve_token", self.reserve_token),
            ("reserve_base", self.reserve_base),
            ("total_issued", self.total_issued),
        ):
            require_u64(name, v)

    @property
    def is_operable(self) -> bool:
        """A pool with either reserve at zero cannot quote a swap."""
        return self.reserve_token > 0 and self.reserve_base > 0

    def get_constant_product(self) -> int:
        """k = reserve_token * reserve_base (not bounded by u64)."""
        return self.reserve_token * self.reserve_base

    def spot_price(self) -> Optional[Fraction]:
        """Marginal base-currency price of one token unit, or None if inoperable."""
        if not self.is_operable:
            return None
        return Fraction(self.reserve_base, self.reserve_token)

    def __repr__(self) -> str:
        return (
            f"LiquidityPool(mint={self.token_mint[:10]}..., "
            f"reserves=(token={self.reserve_token}, base={self.reserve_base}), "
            f"total_issued={self.total_issued})"
        )
