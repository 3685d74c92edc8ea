"""
Liquidity contributor share tracking.

Shares are scoped per pool and recorded by AddLiquidity. Buy and Sell never
read them; they exist so a contributor's claim on pool depth is on record.
Depth deposited without a provider is held under the pool's own id.
"""

from __future__ import annotations

from typing import Dict, Tuple

from .amounts import AccountId, Amount
from .canonical import canonical_id


class LPTable:
    """
    Deterministic share table mapping (wallet, pool) -> shares.

    Notes:
    - Share balances are always non-negative.
    - Zero balances are omitted to keep the table sparse.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[AccountId, AccountId], Amount] = {}

    def get(self, wallet: AccountId, pool: AccountId) -> Amount:
        """Get shares for (wallet, pool). Returns 0 if not found."""
        key = (canonical_id(wallet, name="wallet"), canonical_id(pool, name="pool"))
        return self._balances.get(key, 0)

    def set(self, wallet: AccountId, pool: AccountId, amount: Amount) -> None:
        """Set shares for (wallet, pool)."""
        if amount < 0:
            raise ValueError(f"LP shares cannot be negative: {amount}")
        key = (canonical_id(wallet, name="wallet"), canonical_id(pool, name="pool"))
        if amount == 0:
            self._balances.pop(key, None)
        else:
            self._balances[key] = amount

    def add(self, wallet: AccountId, pool: AccountId, delta: int) -> None:
        """Add delta to a share balance (delta may be negative)."""
        current = self.get(wallet, pool)
        new_balance = current + delta
        if new_balance < 0:
            raise ValueError(
                f"Insufficient LP shares: {current} + {delta} = {new_balance} < 0"
            )
        self.set(wallet, pool, new_balance)

    def total_supply(self, pool: AccountId) -> Amount:
        """Sum of all shares recorded for `pool`."""
        pool_key = canonical_id(pool, name="pool")
        return sum(amount for (_, p), amount in self._balances.items() if p == pool_key)

    def get_all_balances(self) -> Dict[Tuple[AccountId, AccountId], Amount]:
        """Return all share balances."""
        return dict(self._balances)

    def copy(self) -> "LPTable":
        out = LPTable()
        out._balances = dict(self._balances)
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LPTable):
            return NotImplemented
        return self._balances == other._balances

    def __repr__(self) -> str:
        return f"LPTable({len(self._balances)} entries)"
