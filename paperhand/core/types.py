"""Data types for the settlement engine.

All types are frozen dataclasses (immutable). Results carry the post-trade
records plus the events the operation emitted, in emission order.

Units/conventions:
- token amounts and base-currency amounts are integer units (u64 domain).
- `*_bps` rates are basis points (1/10_000).
- `fee_rate` is a percentage (`Decimal`, 1 means 1%).
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum, unique
from typing import Any, ClassVar, Union

from ..state.config import Configuration, FeeRate
from ..state.exchange import ExchangeState
from ..state.pools import LiquidityPool
from ..state.positions import UserPosition
from ..state.treasury import Treasury


@unique
class Action(Enum):
    """One member per state-changing operation."""
    BUY = "buy"
    SELL = "sell"
    ADD_LIQUIDITY = "add_liquidity"
    UPDATE_CONFIG = "update_config"


@unique
class Event(Enum):
    """One member per emitted event record."""
    TRADE_EXECUTED = "TradeExecuted"
    PAPERHAND_TAX_APPLIED = "PaperhandTaxApplied"
    POSITION_UPDATED = "PositionUpdated"
    LIQUIDITY_ADDED = "LiquidityAdded"
    CONFIG_UPDATED = "ConfigUpdated"


@unique
class Side(Enum):
    BUY = "buy"
    SELL = "sell"


# -- events ------------------------------------------------------------------


@dataclass(frozen=True)
class TradeExecuted:
    """`sol_amount` is what the trader paid (buy) or received after tax (sell)."""

    event: ClassVar[Event] = Event.TRADE_EXECUTED

    user: str
    pool: str
    side: Side
    token_amount: int
    sol_amount: int


@dataclass(frozen=True)
class PaperhandTaxApplied:
    """Emitted for loss sales only, before the trade record."""

    event: ClassVar[Event] = Event.PAPERHAND_TAX_APPLIED

    user: str
    pool: str
    sol_out_before_tax: int
    cost_basis_for_sale: int
    tax: int
    sol_to_user: int


@dataclass(frozen=True)
class PositionUpdated:
    event: ClassVar[Event] = Event.POSITION_UPDATED

    user: str
    pool: str
    total_tokens: int
    total_cost: int


@dataclass(frozen=True)
class LiquidityAdded:
    event: ClassVar[Event] = Event.LIQUIDITY_ADDED

    provider: str | None
    pool: str
    token_amount: int
    base_amount: int
    shares_minted: int
    reserve_token: int
    reserve_base: int


@dataclass(frozen=True)
class ConfigUpdated:
    event: ClassVar[Event] = Event.CONFIG_UPDATED

    admin: str
    fee_rate: Decimal
    loss_tax_bps: int
    treasury_address: str


EventRecord = Union[TradeExecuted, PaperhandTaxApplied, PositionUpdated, LiquidityAdded, ConfigUpdated]


def event_to_dict(record: EventRecord) -> dict[str, Any]:
    """JSON-friendly view of an event (enums by value, Decimals as str)."""
    out: dict[str, Any] = {"event": record.event.value}
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Decimal):
            value = str(value)
        out[f.name] = value
    return out


# -- operation results -------------------------------------------------------


@dataclass(frozen=True)
class BuyResult:
    amount_in: int
    tokens_out: int
    fee_retained: int
    pool: LiquidityPool
    position: UserPosition
    events: tuple[EventRecord, ...] = ()


@dataclass(frozen=True)
class SellResult:
    """
    Outcome of a sell.

    `position` is the post-sale record; after a full exit it is flat (and no
    longer stored in the exchange's position table).
    """

    tokens_in: int
    sol_out: int
    cost_basis: int
    was_loss: bool
    tax: int
    net_out: int
    pool: LiquidityPool
    position: UserPosition
    events: tuple[EventRecord, ...] = ()


@dataclass(frozen=True)
class LiquidityResult:
    pool: LiquidityPool
    shares_minted: int
    provider: str | None = None
    events: tuple[EventRecord, ...] = ()


@dataclass(frozen=True)
class ConfigResult:
    config: Configuration
    treasury: Treasury
    events: tuple[EventRecord, ...] = ()


OperationResult = Union[BuyResult, SellResult, LiquidityResult, ConfigResult]


# -- dispatcher --------------------------------------------------------------


@dataclass(frozen=True)
class Command:
    """Parameters for an action. Unused fields keep their defaults."""

    action: Action
    pool: str = ""                      # buy / sell / add_liquidity
    wallet: str = ""                    # buy / sell; add_liquidity provider (optional)
    amount: int = 0                     # buy: amount_in, sell: tokens_in, add_liquidity: token_amount
    base_amount: int = 0                # add_liquidity
    caller: str = ""                    # update_config
    new_fee: FeeRate | None = None      # update_config
    new_tax_bps: int | None = None      # update_config
    new_treasury: str | None = None     # update_config


@dataclass(frozen=True)
class StepResult:
    """Result of a single engine step."""

    accepted: bool
    state: ExchangeState | None = None
    result: OperationResult | None = None
    effects: tuple[EventRecord, ...] = ()
    rejection: str | None = None
    code: str | None = None


__all__ = [
    "Action",
    "BuyResult",
    "Command",
    "ConfigResult",
    "ConfigUpdated",
    "Event",
    "EventRecord",
    "LiquidityAdded",
    "LiquidityResult",
    "OperationResult",
    "PaperhandTaxApplied",
    "PositionUpdated",
    "SellResult",
    "Side",
    "StepResult",
    "TradeExecuted",
    "event_to_dict",
]
