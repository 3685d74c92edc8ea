"""
Global exchange configuration.

One record per deployment. It is passed explicitly into every engine
operation as part of `ExchangeState`; nothing reads it from ambient state.

Units:
- `fee_rate` is a percentage (Decimal, 1 means 1%) with 0.01% resolution.
- `loss_tax_bps` is basis points of sell proceeds (5000 = 50%).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from ..errors import InvalidFee, InvalidTaxBps
from .amounts import AccountId
from .canonical import canonical_id


BPS_DENOM = 10_000
PERCENT_DENOM = 100
MAX_FEE_RATE = Decimal(100)
DEFAULT_LOSS_TAX_BPS = 5_000

FeeRate = Union[Decimal, int, str]


def normalize_fee_rate(fee_rate: FeeRate) -> Decimal:
    """
    Validate a fee percentage and return it as a Decimal.

    Floats are rejected (same rule as canonical encoding); pass a str or Decimal.
    """
    if isinstance(fee_rate, bool) or isinstance(fee_rate, float):
        raise InvalidFee(f"fee_rate must be an int, str or Decimal, got {type(fee_rate).__name__}")
    if isinstance(fee_rate, int):
        value = Decimal(fee_rate)
    elif isinstance(fee_rate, Decimal):
        value = fee_rate
    elif isinstance(fee_rate, str):
        try:
            value = Decimal(fee_rate.strip())
        except InvalidOperation as exc:
            raise InvalidFee(f"fee_rate is not a number: {fee_rate!r}") from exc
    else:
        raise InvalidFee(f"fee_rate must be an int, str or Decimal, got {type(fee_rate).__name__}")

    if not value.is_finite():
        raise InvalidFee(f"fee_rate must be finite: {fee_rate!r}")
    if value < 0 or value > MAX_FEE_RATE:
        raise InvalidFee(f"fee_rate must be in [0, 100]: {fee_rate!r}")
    scaled = value * PERCENT_DENOM
    if scaled != scaled.to_integral_value():
        raise InvalidFee(f"fee_rate resolution is 0.01%: {fee_rate!r}")
    return value


def fee_rate_to_bps(fee_rate: FeeRate) -> int:
    """Convert a fee percentage into basis points (1% -> 100)."""
    return int(normalize_fee_rate(fee_rate) * PERCENT_DENOM)


def validate_loss_tax_bps(loss_tax_bps: int) -> int:
    if not isinstance(loss_tax_bps, int) or isinstance(loss_tax_bps, bool):
        raise InvalidTaxBps("loss_tax_bps must be an int")
    if not (0 <= loss_tax_bps <= BPS_DENOM):
        raise InvalidTaxBps(f"loss_tax_bps must be in [0, {BPS_DENOM}]: {loss_tax_bps}")
    return loss_tax_bps


@dataclass(frozen=True)
class Configuration:
    """
    Engine configuration.

    Attributes:
        fee_rate: Swap fee percentage applied to every swap input
        loss_tax_bps: Share of loss-sale proceeds routed to the treasury
        treasury_address: Destination of loss tax
        admin: Only identity allowed to change this record
    """
    fee_rate: Decimal
    treasury_address: AccountId
    admin: AccountId
    loss_tax_bps: int = DEFAULT_LOSS_TAX_BPS

    def __post_init__(self) -> None:
        object.__setattr__(self, "fee_rate", normalize_fee_rate(self.fee_rate))
        validate_loss_tax_bps(self.loss_tax_bps)
        object.__setattr__(
            self, "treasury_address", canonical_id(self.treasury_address, name="treasury_address")
        )
        object.__setattr__(self, "admin", canonical_id(self.admin, name="admin"))

    @property
    def fee_bps(self) -> int:
        return int(self.fee_rate * PERCENT_DENOM)

    def is_admin(self, caller: AccountId) -> bool:
        try:
            return canonical_id(caller, name="caller") == self.admin
        except (TypeError, ValueError):
            return False
