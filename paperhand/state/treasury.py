"""
Treasury accumulator credited by loss-sale tax.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .amounts import AccountId, Amount, U64_MAX, require_u64
from .canonical import canonical_id


@dataclass(frozen=True)
class Treasury:
    """Running balance of tax proceeds. Withdrawals happen outside the engine."""

    address: AccountId
    balance: Amount = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", canonical_id(self.address, name="address"))
        require_u64("balance", self.balance)

    def can_credit(self, amount: Amount) -> bool:
        return amount >= 0 and self.balance + amount <= U64_MAX

    def credit(self, amount: Amount) -> "Treasury":
        """Return a new Treasury with `amount` added."""
        if amount < 0:
            raise ValueError(f"credit must be non-negative: {amount}")
        return replace(self, balance=self.balance + amount)

    def retarget(self, address: AccountId) -> "Treasury":
        """Point the accumulator at a new destination; the balance carries over."""
        return replace(self, address=address)
