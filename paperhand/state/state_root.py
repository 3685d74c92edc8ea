"""
Deterministic state root hashing (v1).

This is intended for:
- debugging / audit (stable hashes for the same logical state),
- checking that replaying the same operations yields the same snapshot.

Records are hashed in their persisted layout form, so a root computed by an
external reader from raw account data matches the engine's.
"""

from __future__ import annotations

from .canonical import domain_sep_bytes, encode_bytes, encode_uvarint, id_to_bytes, sha256_hex
from .exchange import ExchangeState
from .layout import encode_config, encode_pool, encode_position, encode_treasury
from .lp import LPTable


STATE_ROOT_VERSION = 1


def _encode_pools_section(state: ExchangeState) -> bytes:
    out = bytearray()
    entries = sorted(state.pools.items())
    out += encode_uvarint(len(entries))
    for mint, pool in entries:
        if pool.token_mint != mint:
            raise ValueError(f"pool key mismatch: key={mint} pool.token_mint={pool.token_mint}")
        out += encode_pool(pool)
    return bytes(out)


def _encode_positions_section(state: ExchangeState) -> bytes:
    out = bytearray()
    positions = state.positions.sorted_items()
    out += encode_uvarint(len(positions))
    for position in positions:
        out += encode_position(position)
    return bytes(out)


def _encode_lp_section(lp_shares: LPTable) -> bytes:
    out = bytearray()
    entries = sorted(lp_shares.get_all_balances().items())
    out += encode_uvarint(len(entries))
    for (wallet, pool), amount in entries:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise ValueError(f"invalid LP amount: {amount!r}")
        out += id_to_bytes(wallet, name="wallet")
        out += id_to_bytes(pool, name="pool")
        out += encode_uvarint(amount)
    return bytes(out)


def compute_state_root(state: ExchangeState) -> str:
    """
    Compute a deterministic state root hash for an exchange snapshot.

    Returns a 0x-prefixed sha256 digest.
    """
    if not isinstance(state, ExchangeState):
        raise TypeError("state must be an ExchangeState")

    payload = (
        domain_sep_bytes("state_root", version=STATE_ROOT_VERSION)
        + b"CFG"
        + encode_bytes(encode_config(state.config))
        + b"TRS"
        + encode_bytes(encode_treasury(state.treasury))
        + b"POL"
        + encode_bytes(_encode_pools_section(state))
        + b"POS"
        + encode_bytes(_encode_positions_section(state))
        + b"LPS"
        + encode_bytes(_encode_lp_section(state.lp_shares))
    )
    return sha256_hex(payload)
