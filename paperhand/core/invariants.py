"""Invariant checkers for `ExchangeState`.

Each function returns True when the invariant holds, and `check_all()`
returns the list of violated invariant IDs (empty = all pass). The engine
runs `require_invariants()` on every post-state before returning it.

These are whole-snapshot invariants. The per-swap constant-product check
(`k_after >= k_before`) lives in `curve.swap_exact_in`, where both sides of
the transition are visible.
"""

from __future__ import annotations

from typing import Callable

from ..errors import InvalidConfig, InvariantViolation
from ..state.amounts import U64_MAX
from ..state.config import BPS_DENOM, normalize_fee_rate
from ..state.exchange import ExchangeState


def inv_config_fee_in_range(s: ExchangeState) -> bool:
    try:
        normalize_fee_rate(s.config.fee_rate)
    except InvalidConfig:
        return False
    return True


def inv_config_tax_in_range(s: ExchangeState) -> bool:
    return 0 <= s.config.loss_tax_bps <= BPS_DENOM


def inv_treasury_matches_config(s: ExchangeState) -> bool:
    return s.treasury.address == s.config.treasury_address


def inv_treasury_u64(s: ExchangeState) -> bool:
    return 0 <= s.treasury.balance <= U64_MAX


def inv_pool_keys_match(s: ExchangeState) -> bool:
    return all(key == pool.token_mint for key, pool in s.pools.items())


def inv_pools_operable(s: ExchangeState) -> bool:
    return all(pool.reserve_token > 0 and pool.reserve_base > 0 for pool in s.pools.values())


def inv_pools_u64(s: ExchangeState) -> bool:
    return all(
        0 <= v <= U64_MAX
        for pool in s.pools.values()
        for v in (pool.reserve_token, pool.reserve_base, pool.total_issued)
    )


def inv_positions_flat_consistent(s: ExchangeState) -> bool:
    """Stored rows are open, and open means both fields are non-zero."""
    return all(p.total_tokens > 0 and p.total_cost > 0 for p in s.positions)


def inv_positions_reference_pools(s: ExchangeState) -> bool:
    return all(p.pool in s.pools for p in s.positions)


def inv_lp_shares_reference_pools(s: ExchangeState) -> bool:
    return all(pool in s.pools for (_, pool) in s.lp_shares.get_all_balances())


INVARIANT_REGISTRY: dict[str, Callable[[ExchangeState], bool]] = {
    "inv_config_fee_in_range": inv_config_fee_in_range,
    "inv_config_tax_in_range": inv_config_tax_in_range,
    "inv_treasury_matches_config": inv_treasury_matches_config,
    "inv_treasury_u64": inv_treasury_u64,
    "inv_pool_keys_match": inv_pool_keys_match,
    "inv_pools_operable": inv_pools_operable,
    "inv_pools_u64": inv_pools_u64,
    "inv_positions_flat_consistent": inv_positions_flat_consistent,
    "inv_positions_reference_pools": inv_positions_reference_pools,
    "inv_lp_shares_reference_pools": inv_lp_shares_reference_pools,
}


def check_all(s: ExchangeState) -> list[str]:
    """Return list of violated invariant IDs. Empty list = all pass."""
    return [name for name, fn in INVARIANT_REGISTRY.items() if not fn(s)]


def require_invariants(s: ExchangeState) -> ExchangeState:
    violations = check_all(s)
    if violations:
        raise InvariantViolation(violations)
    return s
