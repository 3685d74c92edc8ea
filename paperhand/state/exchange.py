"""
Exchange snapshot: every record the engine reads or writes.

The host loads an `ExchangeState`, hands it to an engine operation and commits
the returned state as one unit. Copy-on-write helpers return new snapshots and
never touch the receiver.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from .amounts import AccountId
from .canonical import canonical_id
from .config import Configuration
from .lp import LPTable
from .pools import LiquidityPool
from .positions import PositionTable, UserPosition
from .treasury import Treasury


@dataclass(frozen=True)
class ExchangeState:
    config: Configuration
    treasury: Treasury
    pools: Dict[AccountId, LiquidityPool] = field(default_factory=dict)
    positions: PositionTable = field(default_factory=PositionTable)
    lp_shares: LPTable = field(default_factory=LPTable)

    @classmethod
    def create(cls, config: Configuration) -> "ExchangeState":
        """Empty exchange with a zero-balance treasury at the configured address."""
        return cls(config=config, treasury=Treasury(address=config.treasury_address))

    # -- read-only accessors --------------------------------------------------

    def get_pool(self, token_mint: AccountId) -> Optional[LiquidityPool]:
        return self.pools.get(canonical_id(token_mint, name="token_mint"))

    def get_position(self, pool: AccountId, owner: AccountId) -> Optional[UserPosition]:
        return self.positions.get(pool, owner)

    # -- copy-on-write --------------------------------------------------------

    def with_pool(self, pool: LiquidityPool) -> "ExchangeState":
        pools = dict(self.pools)
        pools[pool.token_mint] = pool
        return replace(self, pools=pools)

    def with_position(self, position: UserPosition) -> "ExchangeState":
        positions = self.positions.copy()
        positions.set(position)
        return replace(self, positions=positions)

    def with_treasury(self, treasury: Treasury) -> "ExchangeState":
        return replace(self, treasury=treasury)

    def with_config(self, config: Configuration) -> "ExchangeState":
        return replace(self, config=config)

    def with_lp_shares(self, lp_shares: LPTable) -> "ExchangeState":
        return replace(self, lp_shares=lp_shares)
