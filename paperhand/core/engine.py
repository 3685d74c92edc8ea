"""Settlement engine (functional core).

Every operation takes an `ExchangeState` and returns ``(new_state, result)``
or raises a `SettlementError`. Inputs are never mutated: new records are
built with `dataclasses.replace` and the copy-on-write helpers on
`ExchangeState`, and all preconditions are checked before the new snapshot
exists. The post-state is run through `invariants.require_invariants`.

``step(state, command)`` is the dispatch-table entry point; it returns a
``StepResult`` instead of raising.
"""

from __future__ import annotations

from dataclasses import replace
from math import isqrt
from typing import Callable, Optional

from ..errors import (
    ArithmeticOverflow,
    InsufficientLiquidity,
    InvalidConfig,
    SettlementError,
    Unauthorized,
)
from ..state.amounts import AccountId
from ..state.canonical import canonical_id
from ..state.config import (
    DEFAULT_LOSS_TAX_BPS,
    Configuration,
    FeeRate,
    normalize_fee_rate,
    validate_loss_tax_bps,
)
from ..state.exchange import ExchangeState
from ..state.pools import LiquidityPool
from .invariants import require_invariants
from .ledger import open_position, record_buy
from .math import checked_add, require_amount
from .quotes import quote_buy, quote_sell
from .types import (
    Action,
    BuyResult,
    Command,
    ConfigResult,
    ConfigUpdated,
    LiquidityAdded,
    LiquidityResult,
    OperationResult,
    PaperhandTaxApplied,
    PositionUpdated,
    SellResult,
    Side,
    StepResult,
    TradeExecuted,
)


def _require_pool(state: ExchangeState, token_mint: AccountId) -> LiquidityPool:
    pool = state.get_pool(token_mint)
    if pool is None:
        raise InsufficientLiquidity(f"no pool for mint {token_mint}")
    return pool


def _canonical_config_id(value: AccountId, *, name: str) -> AccountId:
    try:
        return canonical_id(value, name=name)
    except (TypeError, ValueError) as exc:
        raise InvalidConfig(str(exc)) from exc


# -- operations --------------------------------------------------------------


def buy(
    state: ExchangeState,
    pool: AccountId,
    wallet: AccountId,
    amount_in: int,
) -> tuple[ExchangeState, BuyResult]:
    """
    Spend `amount_in` base currency on tokens from `pool`.

    The wallet's position is created if absent and grows by the tokens
    received and the gross (fee-inclusive) amount paid.
    """
    liquidity = _require_pool(state, pool)
    quote = quote_buy(liquidity, amount_in, state.config.fee_rate)

    wallet = canonical_id(wallet, name="wallet")
    position = state.get_position(liquidity.token_mint, wallet)
    if position is None:
        position = open_position(liquidity.token_mint, wallet)
    position = record_buy(position, tokens_out=quote.tokens_out, amount_in=quote.swap.amount_in)

    new_state = require_invariants(state.with_pool(quote.pool_after).with_position(position))
    events = (
        TradeExecuted(
            user=wallet,
            pool=liquidity.token_mint,
            side=Side.BUY,
            token_amount=quote.tokens_out,
            sol_amount=quote.swap.amount_in,
        ),
        PositionUpdated(
            user=wallet,
            pool=liquidity.token_mint,
            total_tokens=position.total_tokens,
            total_cost=position.total_cost,
        ),
    )
    return new_state, BuyResult(
        amount_in=quote.swap.amount_in,
        tokens_out=quote.tokens_out,
        fee_retained=quote.swap.fee_retained,
        pool=quote.pool_after,
        position=position,
        events=events,
    )


def sell(
    state: ExchangeState,
    pool: AccountId,
    wallet: AccountId,
    tokens_in: int,
) -> tuple[ExchangeState, SellResult]:
    """
    Sell `tokens_in` tokens back to `pool`.

    Loss sales (proceeds strictly below the pro-rata cost basis) route
    `loss_tax_bps` of the proceeds to the treasury.
    """
    liquidity = _require_pool(state, pool)
    wallet = canonical_id(wallet, name="wallet")
    quote = quote_sell(
        liquidity,
        state.get_position(liquidity.token_mint, wallet),
        tokens_in,
        state.config,
    )

    treasury = state.treasury
    if quote.tax > 0:
        if not treasury.can_credit(quote.tax):
            raise ArithmeticOverflow(f"treasury balance overflows u64: {treasury.balance} + {quote.tax}")
        treasury = treasury.credit(quote.tax)

    new_state = require_invariants(
        state.with_pool(quote.pool_after)
        .with_position(quote.position_after)
        .with_treasury(treasury)
    )

    events: list = []
    if quote.is_loss:
        events.append(
            PaperhandTaxApplied(
                user=wallet,
                pool=liquidity.token_mint,
                sol_out_before_tax=quote.sol_out,
                cost_basis_for_sale=quote.cost_basis,
                tax=quote.tax,
                sol_to_user=quote.net_out,
            )
        )
    events.append(
        TradeExecuted(
            user=wallet,
            pool=liquidity.token_mint,
            side=Side.SELL,
            token_amount=quote.swap.amount_in,
            sol_amount=quote.net_out,
        )
    )
    events.append(
        PositionUpdated(
            user=wallet,
            pool=liquidity.token_mint,
            total_tokens=quote.position_after.total_tokens,
            total_cost=quote.position_after.total_cost,
        )
    )
    return new_state, SellResult(
        tokens_in=quote.swap.amount_in,
        sol_out=quote.sol_out,
        cost_basis=quote.cost_basis,
        was_loss=quote.is_loss,
        tax=quote.tax,
        net_out=quote.net_out,
        pool=quote.pool_after,
        position=quote.position_after,
        events=tuple(events),
    )


def _shares_to_mint(
    existing: Optional[LiquidityPool],
    supply: int,
    token_amount: int,
    base_amount: int,
) -> int:
    if existing is None:
        return isqrt(token_amount * base_amount)
    return min(
        token_amount * supply // existing.reserve_token,
        base_amount * supply // existing.reserve_base,
    )


def add_liquidity(
    state: ExchangeState,
    pool: AccountId,
    token_amount: int,
    base_amount: int,
    *,
    provider: Optional[AccountId] = None,
) -> tuple[ExchangeState, LiquidityResult]:
    """
    Seed a new pool or deepen an existing one.

    Both reserves and `total_issued` grow by the deposit. Shares are minted
    against the pool's recorded supply and credited to `provider`, or to the
    pool's own id when the deposit is unattributed, so every unit of depth is
    backed by shares.
    """
    token_amount = require_amount("token_amount", token_amount)
    base_amount = require_amount("base_amount", base_amount)
    mint = canonical_id(pool, name="pool")

    existing = state.pools.get(mint)
    if existing is None:
        new_pool = LiquidityPool(
            token_mint=mint,
            reserve_token=token_amount,
            reserve_base=base_amount,
            total_issued=token_amount,
        )
    else:
        new_pool = replace(
            existing,
            reserve_token=checked_add(existing.reserve_token, token_amount, what="reserve_token"),
            reserve_base=checked_add(existing.reserve_base, base_amount, what="reserve_base"),
            total_issued=checked_add(existing.total_issued, token_amount, what="total_issued"),
        )

    if provider is not None:
        provider = canonical_id(provider, name="provider")
    holder = mint if provider is None else provider

    lp_shares = state.lp_shares.copy()
    supply = lp_shares.total_supply(mint)
    if existing is not None and supply == 0:
        # Depth that predates share tracking is backfilled to the pool's own id.
        supply = isqrt(existing.reserve_token * existing.reserve_base)
        lp_shares.set(mint, mint, supply)
    shares = _shares_to_mint(existing, supply, token_amount, base_amount)
    lp_shares.set(holder, mint, checked_add(lp_shares.get(holder, mint), shares, what="lp_shares"))
    new_state = state.with_pool(new_pool).with_lp_shares(lp_shares)

    new_state = require_invariants(new_state)
    event = LiquidityAdded(
        provider=provider,
        pool=mint,
        token_amount=token_amount,
        base_amount=base_amount,
        shares_minted=shares,
        reserve_token=new_pool.reserve_token,
        reserve_base=new_pool.reserve_base,
    )
    return new_state, LiquidityResult(
        pool=new_pool,
        shares_minted=shares,
        provider=provider,
        events=(event,),
    )


def update_config(
    state: ExchangeState,
    caller: AccountId,
    new_fee: Optional[FeeRate] = None,
    new_tax_bps: Optional[int] = None,
    new_treasury: Optional[AccountId] = None,
) -> tuple[ExchangeState, ConfigResult]:
    """
    Admin-only configuration change. Omitted fields keep their value.

    A new treasury address retargets the treasury record; its accumulated
    balance carries over.
    """
    config = state.config
    if not config.is_admin(caller):
        raise Unauthorized("only the admin may update the configuration")

    fee_rate = config.fee_rate if new_fee is None else normalize_fee_rate(new_fee)
    loss_tax_bps = config.loss_tax_bps if new_tax_bps is None else validate_loss_tax_bps(new_tax_bps)
    treasury_address = (
        config.treasury_address
        if new_treasury is None
        else _canonical_config_id(new_treasury, name="new_treasury")
    )

    new_config = replace(
        config,
        fee_rate=fee_rate,
        loss_tax_bps=loss_tax_bps,
        treasury_address=treasury_address,
    )
    treasury = state.treasury
    if treasury.address != treasury_address:
        treasury = treasury.retarget(treasury_address)

    new_state = require_invariants(state.with_config(new_config).with_treasury(treasury))
    event = ConfigUpdated(
        admin=new_config.admin,
        fee_rate=new_config.fee_rate,
        loss_tax_bps=new_config.loss_tax_bps,
        treasury_address=new_config.treasury_address,
    )
    return new_state, ConfigResult(config=new_config, treasury=treasury, events=(event,))


def initialize_config(
    admin: AccountId,
    fee_rate: FeeRate,
    *,
    treasury: AccountId,
    loss_tax_bps: int = DEFAULT_LOSS_TAX_BPS,
) -> ExchangeState:
    """Build the deployment's first Configuration and an empty exchange around it."""
    config = Configuration(
        fee_rate=normalize_fee_rate(fee_rate),
        treasury_address=_canonical_config_id(treasury, name="treasury"),
        admin=_canonical_config_id(admin, name="admin"),
        loss_tax_bps=validate_loss_tax_bps(loss_tax_bps),
    )
    return require_invariants(ExchangeState.create(config))


# -- dispatcher --------------------------------------------------------------


Handler = Callable[[ExchangeState, Command], tuple[ExchangeState, OperationResult]]


def _step_buy(state: ExchangeState, cmd: Command) -> tuple[ExchangeState, OperationResult]:
    return buy(state, cmd.pool, cmd.wallet, cmd.amount)


def _step_sell(state: ExchangeState, cmd: Command) -> tuple[ExchangeState, OperationResult]:
    return sell(state, cmd.pool, cmd.wallet, cmd.amount)


def _step_add_liquidity(state: ExchangeState, cmd: Command) -> tuple[ExchangeState, OperationResult]:
    return add_liquidity(
        state,
        cmd.pool,
        cmd.amount,
        cmd.base_amount,
        provider=cmd.wallet or None,
    )


def _step_update_config(state: ExchangeState, cmd: Command) -> tuple[ExchangeState, OperationResult]:
    return update_config(
        state,
        cmd.caller,
        new_fee=cmd.new_fee,
        new_tax_bps=cmd.new_tax_bps,
        new_treasury=cmd.new_treasury,
    )


_DISPATCH: dict[Action, Handler] = {
    Action.BUY: _step_buy,
    Action.SELL: _step_sell,
    Action.ADD_LIQUIDITY: _step_add_liquidity,
    Action.UPDATE_CONFIG: _step_update_config,
}


def step_or_raise(state: ExchangeState, command: Command) -> StepResult:
    """Like ``step()`` but raises the operation's error instead of returning a rejection.

    Raises:
        SettlementError: Any engine failure (see `paperhand.errors`).
        ValueError: Unknown action, or a malformed identity.
        TypeError: An identity that is not a string.
    """
    handler = _DISPATCH.get(command.action)
    if handler is None:
        raise ValueError(f"unknown_action:{command.action}")
    new_state, result = handler(state, command)
    return StepResult(accepted=True, state=new_state, result=result, effects=result.events)


def step(state: ExchangeState, command: Command) -> StepResult:
    """Execute one command against the given state.

    Returns ``StepResult`` with ``accepted=True`` on success, or
    ``accepted=False`` with a ``rejection`` message and the error kind as
    ``code``. The input state is untouched either way.
    """
    try:
        return step_or_raise(state, command)
    except SettlementError as err:
        return StepResult(accepted=False, rejection=str(err), code=err.code)
    except (TypeError, ValueError) as err:
        return StepResult(accepted=False, rejection=str(err), code="InvalidInput")
