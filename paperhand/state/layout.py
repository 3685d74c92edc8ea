"""
Versioned persisted layouts (v1).

Each record encodes to a fixed-size little-endian byte string:

    discriminator  [8]   sha256("paperhand:account:<Name>")[:8]
    version        u8    LAYOUT_VERSION
    fields ...

Field order (v1):
- Configuration: fee_bps u16, loss_tax_bps u16, treasury [32], admin [32]
- LiquidityPool: token_mint [32], reserve_token u64, reserve_base u64, total_issued u64
- UserPosition:  pool [32], owner [32], total_tokens u64, total_cost u64
- Treasury:      address [32], balance u64

External read-only tooling can decode these without importing the engine.
The structured form (`*_to_dict`) carries the same fields for JSON consumers.
"""

from __future__ import annotations

import hashlib
import struct
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping

from ..errors import InvalidConfig, LayoutError
from .canonical import id_from_bytes, id_to_bytes
from .config import PERCENT_DENOM, Configuration
from .exchange import ExchangeState
from .pools import LiquidityPool
from .positions import UserPosition
from .treasury import Treasury


LAYOUT_VERSION = 1

_HEADER = struct.Struct("<8sB")
_CONFIG_BODY = struct.Struct("<HH32s32s")
_POOL_BODY = struct.Struct("<32sQQQ")
_POSITION_BODY = struct.Struct("<32s32sQQ")
_TREASURY_BODY = struct.Struct("<32sQ")


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"paperhand:account:{name}".encode("ascii")).digest()[:8]


CONFIG_DISCRIMINATOR = account_discriminator("Configuration")
POOL_DISCRIMINATOR = account_discriminator("LiquidityPool")
POSITION_DISCRIMINATOR = account_discriminator("UserPosition")
TREASURY_DISCRIMINATOR = account_discriminator("Treasury")

CONFIG_SIZE = _HEADER.size + _CONFIG_BODY.size
POOL_SIZE = _HEADER.size + _POOL_BODY.size
POSITION_SIZE = _HEADER.size + _POSITION_BODY.size
TREASURY_SIZE = _HEADER.size + _TREASURY_BODY.size


def _header(discriminator: bytes) -> bytes:
    return _HEADER.pack(discriminator, LAYOUT_VERSION)


def _split(data: bytes, *, discriminator: bytes, body: struct.Struct, kind: str) -> tuple:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(f"{kind} data must be bytes")
    expected = _HEADER.size + body.size
    if len(data) != expected:
        raise LayoutError(f"{kind} record must be {expected} bytes, got {len(data)}")
    disc, version = _HEADER.unpack_from(data, 0)
    if disc != discriminator:
        raise LayoutError(f"{kind} record has wrong discriminator: 0x{disc.hex()}")
    if version != LAYOUT_VERSION:
        raise LayoutError(f"{kind} record has unsupported layout version: {version}")
    return body.unpack_from(data, _HEADER.size)


def _build(kind: str, ctor: Callable[..., Any], **kwargs: Any) -> Any:
    try:
        return ctor(**kwargs)
    except (TypeError, ValueError) as exc:
        raise LayoutError(f"{kind} record has invalid fields: {exc}") from exc


# ---------------------------------------------------------------------------
# Binary records
# ---------------------------------------------------------------------------


def encode_config(config: Configuration) -> bytes:
    return _header(CONFIG_DISCRIMINATOR) + _CONFIG_BODY.pack(
        config.fee_bps,
        config.loss_tax_bps,
        id_to_bytes(config.treasury_address, name="treasury_address"),
        id_to_bytes(config.admin, name="admin"),
    )


def decode_config(data: bytes) -> Configuration:
    fee_bps, loss_tax_bps, treasury, admin = _split(
        data, discriminator=CONFIG_DISCRIMINATOR, body=_CONFIG_BODY, kind="Configuration"
    )
    try:
        return Configuration(
            fee_rate=Decimal(fee_bps) / PERCENT_DENOM,
            loss_tax_bps=loss_tax_bps,
            treasury_address=id_from_bytes(treasury),
            admin=id_from_bytes(admin),
        )
    except (InvalidConfig, TypeError, ValueError) as exc:
        raise LayoutError(f"Configuration record has invalid fields: {exc}") from exc


def encode_pool(pool: LiquidityPool) -> bytes:
    return _header(POOL_DISCRIMINATOR) + _POOL_BODY.pack(
        id_to_bytes(pool.token_mint, name="token_mint"),
        pool.reserve_token,
        pool.reserve_base,
        pool.total_issued,
    )


def decode_pool(data: bytes) -> LiquidityPool:
    mint, reserve_token, reserve_base, total_issued = _split(
        data, discriminator=POOL_DISCRIMINATOR, body=_POOL_BODY, kind="LiquidityPool"
    )
    return _build(
        "LiquidityPool",
        LiquidityPool,
        token_mint=id_from_bytes(mint),
        reserve_token=reserve_token,
        reserve_base=reserve_base,
        total_issued=total_issued,
    )


def encode_position(position: UserPosition) -> bytes:
    return _header(POSITION_DISCRIMINATOR) + _POSITION_BODY.pack(
        id_to_bytes(position.pool, name="pool"),
        id_to_bytes(position.owner, name="owner"),
        position.total_tokens,
        position.total_cost,
    )


def decode_position(data: bytes) -> UserPosition:
    pool, owner, total_tokens, total_cost = _split(
        data, discriminator=POSITION_DISCRIMINATOR, body=_POSITION_BODY, kind="UserPosition"
    )
    return _build(
        "UserPosition",
        UserPosition,
        pool=id_from_bytes(pool),
        owner=id_from_bytes(owner),
        total_tokens=total_tokens,
        total_cost=total_cost,
    )


def encode_treasury(treasury: Treasury) -> bytes:
    return _header(TREASURY_DISCRIMINATOR) + _TREASURY_BODY.pack(
        id_to_bytes(treasury.address, name="address"),
        treasury.balance,
    )


def decode_treasury(data: bytes) -> Treasury:
    address, balance = _split(
        data, discriminator=TREASURY_DISCRIMINATOR, body=_TREASURY_BODY, kind="Treasury"
    )
    return _build("Treasury", Treasury, address=id_from_bytes(address), balance=balance)


DECODERS: Dict[str, Callable[[bytes], Any]] = {
    "config": decode_config,
    "pool": decode_pool,
    "position": decode_position,
    "treasury": decode_treasury,
}


# ---------------------------------------------------------------------------
# Structured records
# ---------------------------------------------------------------------------


def config_to_dict(config: Configuration) -> dict[str, Any]:
    return {
        "version": LAYOUT_VERSION,
        "fee_rate": str(config.fee_rate),
        "loss_tax_bps": config.loss_tax_bps,
        "treasury_address": config.treasury_address,
        "admin": config.admin,
    }


def config_from_dict(d: Mapping[str, Any]) -> Configuration:
    _require_version(d, "Configuration")
    return Configuration(
        fee_rate=d["fee_rate"],
        loss_tax_bps=d["loss_tax_bps"],
        treasury_address=d["treasury_address"],
        admin=d["admin"],
    )


def pool_to_dict(pool: LiquidityPool) -> dict[str, Any]:
    return {
        "version": LAYOUT_VERSION,
        "token_mint": pool.token_mint,
        "reserve_token": pool.reserve_token,
        "reserve_base": pool.reserve_base,
        "total_issued": pool.total_issued,
    }


def pool_from_dict(d: Mapping[str, Any]) -> LiquidityPool:
    _require_version(d, "LiquidityPool")
    return LiquidityPool(
        token_mint=d["token_mint"],
        reserve_token=d["reserve_token"],
        reserve_base=d["reserve_base"],
        total_issued=d["total_issued"],
    )


def position_to_dict(position: UserPosition) -> dict[str, Any]:
    return {
        "version": LAYOUT_VERSION,
        "pool": position.pool,
        "owner": position.owner,
        "total_tokens": position.total_tokens,
        "total_cost": position.total_cost,
    }


def position_from_dict(d: Mapping[str, Any]) -> UserPosition:
    _require_version(d, "UserPosition")
    return UserPosition(
        pool=d["pool"],
        owner=d["owner"],
        total_tokens=d["total_tokens"],
        total_cost=d["total_cost"],
    )


def treasury_to_dict(treasury: Treasury) -> dict[str, Any]:
    return {
        "version": LAYOUT_VERSION,
        "address": treasury.address,
        "balance": treasury.balance,
    }


def _require_version(d: Mapping[str, Any], kind: str) -> None:
    version = d.get("version", LAYOUT_VERSION)
    if version != LAYOUT_VERSION:
        raise LayoutError(f"{kind} dict has unsupported layout version: {version!r}")


def exchange_to_dict(state: ExchangeState) -> dict[str, Any]:
    """Whole snapshot in structured form, ordered deterministically."""
    return {
        "version": LAYOUT_VERSION,
        "config": config_to_dict(state.config),
        "treasury": treasury_to_dict(state.treasury),
        "pools": [pool_to_dict(state.pools[k]) for k in sorted(state.pools)],
        "positions": [position_to_dict(p) for p in state.positions.sorted_items()],
        "lp_shares": [
            {"wallet": wallet, "pool": pool, "shares": shares}
            for (wallet, pool), shares in sorted(state.lp_shares.get_all_balances().items())
        ],
    }
