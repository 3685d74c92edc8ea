"""Tests for paperhand/core/engine.py: operations end-to-end plus the step dispatcher."""

from __future__ import annotations

from dataclasses import replace
from math import isqrt

import pytest

from paperhand.core.engine import (
    add_liquidity,
    buy,
    initialize_config,
    sell,
    step,
    step_or_raise,
    update_config,
)
from paperhand.core.types import (
    Action,
    Command,
    ConfigUpdated,
    LiquidityAdded,
    PaperhandTaxApplied,
    PositionUpdated,
    Side,
    TradeExecuted,
)
from paperhand.errors import (
    ArithmeticOverflow,
    InsufficientLiquidity,
    InsufficientPosition,
    InvalidAmount,
    InvalidConfig,
    InvalidFee,
    InvalidTaxBps,
    Unauthorized,
)
from paperhand.state.amounts import U64_MAX
from paperhand.state.pools import LiquidityPool
from paperhand.state.state_root import compute_state_root
from paperhand.state.treasury import Treasury

MINT = "0x" + "11" * 32
ALICE = "0x" + "a1" * 32
BOB = "0x" + "b0" * 32
ADMIN = "0x" + "ad" * 32
TREASURY = "0x" + "7e" * 32
NEW_TREASURY = "0x" + "7f" * 32

RESERVE_TOKEN = 1_000_000_000_000
RESERVE_BASE = 30_000_000_000
BUY_IN = 500_000_000
TOKENS_OUT = 16_232_169_208


def _exchange(fee="1", tax_bps=5000):
    state = initialize_config(ADMIN, fee, treasury=TREASURY, loss_tax_bps=tax_bps)
    state, _ = add_liquidity(state, MINT, RESERVE_TOKEN, RESERVE_BASE)
    return state


def _after_alice_buy():
    state, _ = buy(_exchange(), MINT, ALICE, BUY_IN)
    return state


# ---------------------------------------------------------------------------
# buy
# ---------------------------------------------------------------------------

class TestBuy:
    def test_first_buy_opens_position(self):
        s0 = _exchange()
        s1, r = buy(s0, MINT, ALICE, BUY_IN)
        assert r.tokens_out == TOKENS_OUT
        assert r.amount_in == BUY_IN
        assert r.fee_retained == 5_000_000

        pos = s1.get_position(MINT, ALICE)
        assert pos is not None
        assert (pos.total_tokens, pos.total_cost) == (TOKENS_OUT, BUY_IN)

        pool = s1.get_pool(MINT)
        assert pool.reserve_base == RESERVE_BASE + BUY_IN
        assert pool.reserve_token == RESERVE_TOKEN - TOKENS_OUT
        assert pool.total_issued == RESERVE_TOKEN

    def test_input_state_untouched(self):
        s0 = _exchange()
        root = compute_state_root(s0)
        buy(s0, MINT, ALICE, BUY_IN)
        assert compute_state_root(s0) == root
        assert s0.get_position(MINT, ALICE) is None
        assert s0.get_pool(MINT).reserve_base == RESERVE_BASE

    def test_events(self):
        _, r = buy(_exchange(), MINT, ALICE, BUY_IN)
        trade, update = r.events
        assert isinstance(trade, TradeExecuted)
        assert trade.side is Side.BUY
        assert (trade.token_amount, trade.sol_amount) == (TOKENS_OUT, BUY_IN)
        assert isinstance(update, PositionUpdated)
        assert (update.total_tokens, update.total_cost) == (TOKENS_OUT, BUY_IN)

    def test_second_buy_accumulates(self):
        s1 = _after_alice_buy()
        s2, r = buy(s1, MINT, ALICE, BUY_IN)
        pos = s2.get_position(MINT, ALICE)
        assert pos.total_tokens == TOKENS_OUT + r.tokens_out
        assert pos.total_cost == 2 * BUY_IN
        # Price moved up, so the second buy gets fewer tokens.
        assert r.tokens_out < TOKENS_OUT

    def test_ids_are_canonicalized(self):
        s1, _ = buy(_exchange(), MINT[2:].upper(), ALICE.upper(), BUY_IN)
        assert s1.get_position(MINT, ALICE) is not None

    def test_unknown_pool(self):
        with pytest.raises(InsufficientLiquidity):
            buy(_exchange(), "0x" + "99" * 32, ALICE, BUY_IN)

    @pytest.mark.parametrize("amount", [0, -1, True])
    def test_invalid_amount(self, amount):
        with pytest.raises(InvalidAmount):
            buy(_exchange(), MINT, ALICE, amount)


# ---------------------------------------------------------------------------
# sell
# ---------------------------------------------------------------------------

class TestSell:
    def test_immediate_dump_is_a_taxed_loss(self):
        s1 = _after_alice_buy()
        s2, r = sell(s1, MINT, ALICE, TOKENS_OUT)

        assert r.cost_basis == BUY_IN
        assert r.sol_out < BUY_IN
        assert r.was_loss
        assert r.tax == r.sol_out * 5000 // 10_000
        assert r.net_out == r.sol_out - r.tax
        assert s2.treasury.balance == r.tax
        assert s2.get_position(MINT, ALICE) is None
        assert (r.position.total_tokens, r.position.total_cost) == (0, 0)

        pool_before, pool_after = s1.get_pool(MINT), s2.get_pool(MINT)
        assert pool_after.reserve_token == pool_before.reserve_token + TOKENS_OUT
        assert pool_after.reserve_base == pool_before.reserve_base - r.sol_out

    def test_loss_events_in_emission_order(self):
        _, r = sell(_after_alice_buy(), MINT, ALICE, TOKENS_OUT)
        tax, trade, update = r.events
        assert isinstance(tax, PaperhandTaxApplied)
        assert tax.sol_out_before_tax == r.sol_out
        assert tax.cost_basis_for_sale == r.cost_basis
        assert tax.sol_to_user == r.net_out
        assert isinstance(trade, TradeExecuted)
        assert trade.side is Side.SELL
        assert trade.sol_amount == r.net_out
        assert isinstance(update, PositionUpdated)
        assert (update.total_tokens, update.total_cost) == (0, 0)

    def test_profitable_sell_is_untaxed(self):
        s1 = _after_alice_buy()
        s2, _ = buy(s1, MINT, BOB, 10_000_000_000)
        s3, r = sell(s2, MINT, ALICE, TOKENS_OUT)
        assert not r.was_loss
        assert r.sol_out > BUY_IN
        assert r.tax == 0
        assert r.net_out == r.sol_out
        assert s3.treasury.balance == 0
        assert [type(e) for e in r.events] == [TradeExecuted, PositionUpdated]

    def test_sell_without_position(self):
        s0 = _exchange()
        root = compute_state_root(s0)
        with pytest.raises(InsufficientPosition):
            sell(s0, MINT, ALICE, 1)
        assert compute_state_root(s0) == root
        assert s0.treasury.balance == 0

    def test_oversell(self):
        with pytest.raises(InsufficientPosition):
            sell(_after_alice_buy(), MINT, ALICE, TOKENS_OUT + 1)

    def test_zero_tokens(self):
        with pytest.raises(InvalidAmount):
            sell(_after_alice_buy(), MINT, ALICE, 0)

    def test_other_wallet_cannot_sell_alices_tokens(self):
        with pytest.raises(InsufficientPosition):
            sell(_after_alice_buy(), MINT, BOB, 1)

    def test_halves_at_different_prices_end_flat(self):
        half = TOKENS_OUT // 2
        s1 = _after_alice_buy()
        s2, first = sell(s1, MINT, ALICE, half)
        assert first.cost_basis == BUY_IN // 2
        mid = s2.get_position(MINT, ALICE)
        assert (mid.total_tokens, mid.total_cost) == (half, BUY_IN - BUY_IN // 2)

        s3, _ = buy(s2, MINT, BOB, 5_000_000_000)
        s4, second = sell(s3, MINT, ALICE, half)
        assert second.cost_basis == BUY_IN - BUY_IN // 2
        assert first.sol_out != second.sol_out
        assert s4.get_position(MINT, ALICE) is None

    def test_partial_sell_keeps_pro_rata_cost(self):
        s1 = _after_alice_buy()
        s2, r = sell(s1, MINT, ALICE, 1_000)
        assert r.cost_basis == BUY_IN * 1_000 // TOKENS_OUT
        pos = s2.get_position(MINT, ALICE)
        assert pos.total_tokens == TOKENS_OUT - 1_000
        assert pos.total_cost == BUY_IN - r.cost_basis

    def test_treasury_overflow_rejected(self):
        s1 = _after_alice_buy().with_treasury(Treasury(address=TREASURY, balance=U64_MAX))
        with pytest.raises(ArithmeticOverflow):
            sell(s1, MINT, ALICE, TOKENS_OUT)

    def test_zero_tax_rate_still_flags_loss(self):
        state = initialize_config(ADMIN, "1", treasury=TREASURY, loss_tax_bps=0)
        state, _ = add_liquidity(state, MINT, RESERVE_TOKEN, RESERVE_BASE)
        state, _ = buy(state, MINT, ALICE, BUY_IN)
        state, r = sell(state, MINT, ALICE, TOKENS_OUT)
        assert r.was_loss
        assert r.tax == 0
        assert state.treasury.balance == 0


# ---------------------------------------------------------------------------
# add_liquidity
# ---------------------------------------------------------------------------

class TestAddLiquidity:
    def test_seed_creates_pool(self):
        s0 = initialize_config(ADMIN, "1", treasury=TREASURY)
        s1, r = add_liquidity(s0, MINT, 1_000_000, 4_000_000)
        pool = s1.get_pool(MINT)
        assert (pool.reserve_token, pool.reserve_base, pool.total_issued) == (1_000_000, 4_000_000, 1_000_000)
        assert r.shares_minted == 2_000_000
        assert s1.lp_shares.get(MINT, MINT) == 2_000_000
        assert s0.get_pool(MINT) is None
        (event,) = r.events
        assert isinstance(event, LiquidityAdded)
        assert event.provider is None

    def test_deepen_existing_pool(self):
        s1, _ = add_liquidity(_exchange(), MINT, 1_000, 30)
        pool = s1.get_pool(MINT)
        assert pool.reserve_token == RESERVE_TOKEN + 1_000
        assert pool.reserve_base == RESERVE_BASE + 30
        assert pool.total_issued == RESERVE_TOKEN + 1_000

    def test_provider_shares(self):
        s0 = initialize_config(ADMIN, "1", treasury=TREASURY)
        s1, first = add_liquidity(s0, MINT, 1_000_000, 4_000_000, provider=ALICE)
        assert first.shares_minted == 2_000_000
        s2, second = add_liquidity(s1, MINT, 500_000, 2_000_000, provider=BOB)
        assert second.shares_minted == 1_000_000
        assert s2.lp_shares.get(ALICE, MINT) == 2_000_000
        assert s2.lp_shares.get(BOB, MINT) == 1_000_000
        assert s2.lp_shares.total_supply(MINT) == 3_000_000
        assert s0.lp_shares.total_supply(MINT) == 0

    def test_named_deposit_is_measured_against_pool_depth(self):
        seeded = isqrt(RESERVE_TOKEN * RESERVE_BASE)
        s1, r = add_liquidity(_exchange(), MINT, 1_000, 30, provider=BOB)
        assert r.shares_minted == 173
        assert s1.lp_shares.get(MINT, MINT) == seeded
        assert s1.lp_shares.total_supply(MINT) == seeded + 173
        # Share of supply never exceeds share of deposited depth.
        assert r.shares_minted * RESERVE_TOKEN <= 1_000 * seeded

    def test_untracked_depth_is_backfilled(self):
        s0 = initialize_config(ADMIN, "1", treasury=TREASURY).with_pool(
            LiquidityPool(token_mint=MINT, reserve_token=1_000_000, reserve_base=4_000_000)
        )
        s1, r = add_liquidity(s0, MINT, 500_000, 2_000_000, provider=BOB)
        assert r.shares_minted == 1_000_000
        assert s1.lp_shares.get(MINT, MINT) == 2_000_000
        assert s1.lp_shares.get(BOB, MINT) == 1_000_000
        assert s0.lp_shares.total_supply(MINT) == 0

    def test_swaps_leave_total_issued_alone(self):
        s1 = _after_alice_buy()
        s2, _ = sell(s1, MINT, ALICE, TOKENS_OUT)
        assert s2.get_pool(MINT).total_issued == RESERVE_TOKEN

    @pytest.mark.parametrize("amounts", [(0, 1), (1, 0), (-1, 5)])
    def test_invalid_amounts(self, amounts):
        with pytest.raises(InvalidAmount):
            add_liquidity(_exchange(), MINT, *amounts)

    def test_reserve_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            add_liquidity(_exchange(), MINT, U64_MAX, 1)


# ---------------------------------------------------------------------------
# update_config / initialize_config
# ---------------------------------------------------------------------------

class TestConfig:
    def test_non_admin_rejected(self):
        with pytest.raises(Unauthorized):
            update_config(_exchange(), ALICE, new_fee="2")

    def test_garbage_caller_is_unauthorized(self):
        with pytest.raises(Unauthorized):
            update_config(_exchange(), "not-an-id", new_fee="2")

    def test_fee_change_applies_to_next_swap(self):
        s1, r = update_config(_exchange(), ADMIN, new_fee="0")
        assert s1.config.fee_bps == 0
        (event,) = r.events
        assert isinstance(event, ConfigUpdated)
        _, b = buy(s1, MINT, ALICE, BUY_IN)
        assert b.fee_retained == 0

    def test_omitted_fields_keep_values(self):
        s0 = _exchange()
        s1, _ = update_config(s0, ADMIN, new_tax_bps=2500)
        assert s1.config.loss_tax_bps == 2500
        assert s1.config.fee_rate == s0.config.fee_rate
        assert s1.config.treasury_address == TREASURY

    def test_invalid_values(self):
        with pytest.raises(InvalidFee):
            update_config(_exchange(), ADMIN, new_fee="101")
        with pytest.raises(InvalidFee):
            update_config(_exchange(), ADMIN, new_fee=0.5)
        with pytest.raises(InvalidTaxBps):
            update_config(_exchange(), ADMIN, new_tax_bps=10_001)
        with pytest.raises(InvalidConfig):
            update_config(_exchange(), ADMIN, new_treasury="0x1234")

    def test_treasury_retarget_keeps_balance(self):
        s1, r = sell(_after_alice_buy(), MINT, ALICE, TOKENS_OUT)
        s2, c = update_config(s1, ADMIN, new_treasury=NEW_TREASURY)
        assert s2.config.treasury_address == NEW_TREASURY
        assert s2.treasury.address == NEW_TREASURY
        assert s2.treasury.balance == r.tax
        assert c.treasury == s2.treasury

    def test_initialize_config(self):
        s = initialize_config(ADMIN.upper(), "0.5", treasury=TREASURY)
        assert s.config.admin == ADMIN
        assert s.config.fee_bps == 50
        assert s.config.loss_tax_bps == 5000
        assert s.treasury == Treasury(address=TREASURY, balance=0)
        assert s.pools == {}

    def test_initialize_config_validates(self):
        with pytest.raises(InvalidFee):
            initialize_config(ADMIN, "100.01", treasury=TREASURY)
        with pytest.raises(InvalidTaxBps):
            initialize_config(ADMIN, "1", treasury=TREASURY, loss_tax_bps=20_000)
        with pytest.raises(InvalidConfig):
            initialize_config("admin", "1", treasury=TREASURY)


# ---------------------------------------------------------------------------
# step / step_or_raise
# ---------------------------------------------------------------------------

class TestStep:
    def test_accepted_buy(self):
        s0 = _exchange()
        r = step(s0, Command(action=Action.BUY, pool=MINT, wallet=ALICE, amount=BUY_IN))
        assert r.accepted
        assert r.state is not None
        assert r.result.tokens_out == TOKENS_OUT
        assert r.effects == r.result.events
        assert r.code is None

    def test_rejected_sell_reports_kind(self):
        s0 = _exchange()
        r = step(s0, Command(action=Action.SELL, pool=MINT, wallet=ALICE, amount=1))
        assert not r.accepted
        assert r.state is None
        assert r.code == "InsufficientPosition"
        assert r.rejection

    def test_malformed_id_is_invalid_input(self):
        r = step(_exchange(), Command(action=Action.BUY, pool="nope", wallet=ALICE, amount=1))
        assert not r.accepted
        assert r.code == "InvalidInput"

    def test_add_liquidity_wallet_is_provider(self):
        r = step(
            _exchange(),
            Command(action=Action.ADD_LIQUIDITY, pool=MINT, wallet=BOB, amount=1_000, base_amount=30),
        )
        assert r.accepted
        assert r.result.provider == BOB
        assert r.state.lp_shares.get(BOB, MINT) == r.result.shares_minted
        assert r.result.shares_minted < r.state.lp_shares.total_supply(MINT)

    def test_update_config(self):
        r = step(_exchange(), Command(action=Action.UPDATE_CONFIG, caller=ADMIN, new_tax_bps=100))
        assert r.accepted
        assert r.state.config.loss_tax_bps == 100

    def test_step_or_raise(self):
        with pytest.raises(InsufficientPosition):
            step_or_raise(_exchange(), Command(action=Action.SELL, pool=MINT, wallet=ALICE, amount=1))

    def test_replay_from_same_state_is_deterministic(self):
        s0 = _after_alice_buy()
        cmd = Command(action=Action.SELL, pool=MINT, wallet=ALICE, amount=TOKENS_OUT // 3)
        a, b = step(s0, cmd), step(s0, cmd)
        assert compute_state_root(a.state) == compute_state_root(b.state)
        assert a.result == b.result

    def test_invariant_failure_rejects(self):
        # A state whose treasury drifted from config can never be committed.
        s0 = replace(_exchange(), treasury=Treasury(address=NEW_TREASURY))
        r = step(s0, Command(action=Action.BUY, pool=MINT, wallet=ALICE, amount=BUY_IN))
        assert not r.accepted
        assert r.code == "InvariantViolation"
        assert "inv_treasury_matches_config" in r.rejection
