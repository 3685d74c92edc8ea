"""
In-memory host for the settlement engine.

This is the imperative shell around the functional core:
- Holds the current `ExchangeState` snapshot.
- Applies one command at a time under a lock.
- Commits by swapping the snapshot reference, so a failed command leaves the
  previous snapshot in place and a successful one lands as a single unit.
- Logs committed and rejected operations.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, cast

from ..core.engine import step, step_or_raise
from ..core.types import (
    Action,
    BuyResult,
    Command,
    ConfigResult,
    EventRecord,
    LiquidityResult,
    OperationResult,
    SellResult,
    StepResult,
)
from ..errors import SettlementError
from ..state.amounts import AccountId
from ..state.config import Configuration, FeeRate
from ..state.exchange import ExchangeState
from ..state.state_root import compute_state_root

log = logging.getLogger(__name__)


def _describe(result: OperationResult) -> str:
    if isinstance(result, BuyResult):
        return f"buy pool={result.pool.token_mint[:10]}... in={result.amount_in} out={result.tokens_out}"
    if isinstance(result, SellResult):
        return (
            f"sell pool={result.pool.token_mint[:10]}... in={result.tokens_in} "
            f"sol_out={result.sol_out} tax={result.tax} net={result.net_out}"
        )
    if isinstance(result, LiquidityResult):
        return (
            f"add_liquidity pool={result.pool.token_mint[:10]}... "
            f"reserves=({result.pool.reserve_token}, {result.pool.reserve_base}) shares={result.shares_minted}"
        )
    return f"update_config fee={result.config.fee_rate} tax_bps={result.config.loss_tax_bps}"


class InMemoryHost:
    """Serializes engine calls and commits their post-states atomically."""

    def __init__(self, state: ExchangeState) -> None:
        self._state = state
        self._lock = threading.Lock()
        self._events: List[EventRecord] = []

    @classmethod
    def from_config(cls, config: Configuration) -> "InMemoryHost":
        return cls(ExchangeState.create(config))

    def snapshot(self) -> ExchangeState:
        """Current committed state. Snapshots are immutable; no copy is needed."""
        return self._state

    def events(self) -> tuple[EventRecord, ...]:
        """Events emitted by committed operations since the last drain, oldest first."""
        with self._lock:
            return tuple(self._events)

    def drain_events(self) -> tuple[EventRecord, ...]:
        """Return the buffered events and clear the buffer."""
        with self._lock:
            drained = tuple(self._events)
            self._events.clear()
            return drained

    def state_root(self) -> str:
        return compute_state_root(self._state)

    def _commit(self, command: Command, result: StepResult) -> OperationResult:
        if result.state is None or result.result is None:
            raise RuntimeError(f"cannot commit a rejected {command.action.value}")
        self._state = result.state
        self._events.extend(result.effects)
        log.info(f"committed {_describe(result.result)}")
        if isinstance(result.result, SellResult) and result.result.was_loss:
            log.info(
                f"loss tax applied: wallet={command.wallet[:10]}... "
                f"cost_basis={result.result.cost_basis} tax={result.result.tax}"
            )
        return result.result

    def apply(self, command: Command) -> OperationResult:
        """Run `command` and commit its post-state; engine errors are logged and re-raised."""
        with self._lock:
            try:
                result = step_or_raise(self._state, command)
            except (SettlementError, TypeError, ValueError) as err:
                code = err.code if isinstance(err, SettlementError) else "InvalidInput"
                log.warning(f"rejected {command.action.value}: {code}: {err}")
                raise
            return self._commit(command, result)

    def try_apply(self, command: Command) -> StepResult:
        """Non-raising variant of `apply`; rejected commands leave the state unchanged."""
        with self._lock:
            result = step(self._state, command)
            if result.accepted:
                self._commit(command, result)
            else:
                log.warning(f"rejected {command.action.value}: {result.code}: {result.rejection}")
            return result

    # -- convenience wrappers -------------------------------------------------

    def buy(self, pool: AccountId, wallet: AccountId, amount_in: int) -> BuyResult:
        return cast(BuyResult, self.apply(Command(action=Action.BUY, pool=pool, wallet=wallet, amount=amount_in)))

    def sell(self, pool: AccountId, wallet: AccountId, tokens_in: int) -> SellResult:
        return cast(SellResult, self.apply(Command(action=Action.SELL, pool=pool, wallet=wallet, amount=tokens_in)))

    def add_liquidity(
        self,
        pool: AccountId,
        token_amount: int,
        base_amount: int,
        *,
        provider: Optional[AccountId] = None,
    ) -> LiquidityResult:
        result = self.apply(
            Command(
                action=Action.ADD_LIQUIDITY,
                pool=pool,
                wallet=provider or "",
                amount=token_amount,
                base_amount=base_amount,
            )
        )
        return cast(LiquidityResult, result)

    def update_config(
        self,
        caller: AccountId,
        new_fee: Optional[FeeRate] = None,
        new_tax_bps: Optional[int] = None,
        new_treasury: Optional[AccountId] = None,
    ) -> ConfigResult:
        result = self.apply(
            Command(
                action=Action.UPDATE_CONFIG,
                caller=caller,
                new_fee=new_fee,
                new_tax_bps=new_tax_bps,
                new_treasury=new_treasury,
            )
        )
        return cast(ConfigResult, result)
