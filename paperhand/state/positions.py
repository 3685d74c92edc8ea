"""
Per-wallet cost-basis records.

One `UserPosition` per (pool, wallet). The ledger is a single blended
(total_tokens, total_cost) pair, not a list of purchase lots.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterator, Optional, Tuple

from .amounts import AccountId, Amount, require_u64
from .canonical import canonical_id


@dataclass(frozen=True)
class UserPosition:
    """
    Weighted-average cost basis of a wallet's engine-acquired tokens.

    Attributes:
        pool: Token mint of the pool
        owner: Wallet identity
        total_tokens: Tokens attributed to this wallet by Buy/Sell
        total_cost: Base currency paid for `total_tokens` (fee-inclusive)
    """
    pool: AccountId
    owner: AccountId
    total_tokens: Amount = 0
    total_cost: Amount = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "pool", canonical_id(self.pool, name="pool"))
        object.__setattr__(self, "owner", canonical_id(self.owner, name="owner"))
        require_u64("total_tokens", self.total_tokens)
        require_u64("total_cost", self.total_cost)
        if (self.total_tokens == 0) != (self.total_cost == 0):
            raise ValueError(
                f"position must be flat in both fields or neither: "
                f"total_tokens={self.total_tokens} total_cost={self.total_cost}"
            )

    @property
    def is_open(self) -> bool:
        return self.total_tokens > 0

    @property
    def average_cost(self) -> Optional[Fraction]:
        """Base currency per token unit, None when flat."""
        if not self.is_open:
            return None
        return Fraction(self.total_cost, self.total_tokens)

    @property
    def key(self) -> Tuple[AccountId, AccountId]:
        return (self.pool, self.owner)


class PositionTable:
    """
    Sparse table mapping (pool, wallet) -> UserPosition.

    Notes:
    - Flat positions are omitted; a missing row means "no position".
    - Do not rely on dict iteration order; `sorted_items()` is the
      deterministic view used at serialization and hashing boundaries.
    """

    def __init__(self) -> None:
        self._positions: Dict[Tuple[AccountId, AccountId], UserPosition] = {}

    def get(self, pool: AccountId, owner: AccountId) -> Optional[UserPosition]:
        """Get the position for (pool, owner). Returns None if not found."""
        key = (canonical_id(pool, name="pool"), canonical_id(owner, name="owner"))
        return self._positions.get(key)

    def set(self, position: UserPosition) -> None:
        """Store a position; flat positions remove the row."""
        if not isinstance(position, UserPosition):
            raise TypeError("position must be a UserPosition")
        if position.is_open:
            self._positions[position.key] = position
        else:
            self._positions.pop(position.key, None)

    def copy(self) -> "PositionTable":
        out = PositionTable()
        out._positions = dict(self._positions)
        return out

    def sorted_items(self) -> list[UserPosition]:
        return [self._positions[k] for k in sorted(self._positions)]

    def positions_for_pool(self, pool: AccountId) -> Dict[AccountId, UserPosition]:
        pool_key = canonical_id(pool, name="pool")
        return {owner: p for (pl, owner), p in self._positions.items() if pl == pool_key}

    def __iter__(self) -> Iterator[UserPosition]:
        return iter(self.sorted_items())

    def __len__(self) -> int:
        return len(self._positions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PositionTable):
            return NotImplemented
        return self._positions == other._positions

    def __repr__(self) -> str:
        return f"PositionTable({len(self._positions)} entries)"
