"""
Command-line tooling for the settlement engine.

    paperhand quote-buy --reserve-token N --reserve-base N --amount N [--fee PCT]
    paperhand quote-sell --reserve-token N --reserve-base N --amount N --total-cost N
                         [--total-tokens N] [--fee PCT] [--tax-bps BPS]
    paperhand decode --kind {config,pool,position,treasury} HEX
    paperhand simulate SCENARIO.yaml [--config SETTINGS.yaml]

`simulate` replays a scenario through `InMemoryHost` and prints the final
state, its state root, the emitted events and any rejections as canonical
JSON. Settings default to the file named by `PAPERHAND_CONFIG`.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from .core.quotes import quote_buy, quote_sell
from .core.types import event_to_dict
from .errors import SettlementError
from .integration.host import InMemoryHost
from .integration.operations import command_to_dict
from .integration.settings import load_scenario, load_settings, settings_path_from_env
from .state.canonical import canonical_json_bytes
from .state.config import DEFAULT_LOSS_TAX_BPS, Configuration
from .state.layout import DECODERS, exchange_to_dict
from .state.pools import LiquidityPool
from .state.positions import UserPosition
from .state.state_root import compute_state_root

log = logging.getLogger(__name__)

# Quotes are identity-free; records still need syntactically valid ids.
_PREVIEW_ID = "0x" + "00" * 32


def _print_json(obj: Any, *, canonical: bool = False) -> None:
    if canonical:
        sys.stdout.write(canonical_json_bytes(obj).decode("utf-8") + "\n")
    else:
        sys.stdout.write(json.dumps(obj, indent=2, sort_keys=True) + "\n")


def _preview_pool(args: argparse.Namespace) -> LiquidityPool:
    return LiquidityPool(
        token_mint=_PREVIEW_ID,
        reserve_token=args.reserve_token,
        reserve_base=args.reserve_base,
    )


def _cmd_quote_buy(args: argparse.Namespace) -> int:
    quote = quote_buy(_preview_pool(args), args.amount, args.fee)
    _print_json(
        {
            "amount_in": quote.swap.amount_in,
            "adjusted_in": quote.swap.adjusted_in,
            "fee_retained": quote.swap.fee_retained,
            "tokens_out": quote.tokens_out,
            "reserve_token_after": quote.pool_after.reserve_token,
            "reserve_base_after": quote.pool_after.reserve_base,
        }
    )
    return 0


def _cmd_quote_sell(args: argparse.Namespace) -> int:
    total_tokens = args.amount if args.total_tokens is None else args.total_tokens
    config = Configuration(
        fee_rate=args.fee,
        treasury_address=_PREVIEW_ID,
        admin=_PREVIEW_ID,
        loss_tax_bps=args.tax_bps,
    )
    position = UserPosition(
        pool=_PREVIEW_ID,
        owner=_PREVIEW_ID,
        total_tokens=total_tokens,
        total_cost=args.total_cost,
    )
    quote = quote_sell(_preview_pool(args), position, args.amount, config)
    _print_json(
        {
            "tokens_in": quote.swap.amount_in,
            "sol_out": quote.sol_out,
            "cost_basis": quote.cost_basis,
            "is_loss": quote.is_loss,
            "tax": quote.tax,
            "net_out": quote.net_out,
            "reserve_token_after": quote.pool_after.reserve_token,
            "reserve_base_after": quote.pool_after.reserve_base,
            "position_after": {
                "total_tokens": quote.position_after.total_tokens,
                "total_cost": quote.position_after.total_cost,
            },
        }
    )
    return 0


def _cmd_decode(args: argparse.Namespace) -> int:
    raw = args.hex.strip()
    if raw.startswith(("0x", "0X")):
        raw = raw[2:]
    data = bytes.fromhex(raw)
    record = DECODERS[args.kind](data)
    _print_json({"kind": args.kind, "record": repr(record), "fields": _record_fields(record)})
    return 0


def _record_fields(record: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in vars(record).items():
        out[name] = value if isinstance(value, (int, str)) else str(value)
    return out


def _cmd_simulate(args: argparse.Namespace) -> int:
    scenario = load_scenario(Path(args.scenario))
    config: Optional[Configuration] = scenario.config
    settings_path = Path(args.config) if args.config else settings_path_from_env()
    if settings_path is not None:
        log.info(f"loading settings from {settings_path}")
        config = load_settings(settings_path)
    if config is None:
        raise SystemExit("scenario has no config; pass --config or set PAPERHAND_CONFIG")

    host = InMemoryHost.from_config(config)
    rejected = []
    for i, command in enumerate(scenario.operations):
        result = host.try_apply(command)
        if not result.accepted:
            rejected.append(
                {
                    "index": i,
                    "operation": command_to_dict(command),
                    "code": result.code,
                    "reason": result.rejection,
                }
            )

    state = host.snapshot()
    _print_json(
        {
            "state": exchange_to_dict(state),
            "state_root": compute_state_root(state),
            "events": [event_to_dict(e) for e in host.events()],
            "rejected": rejected,
        },
        canonical=True,
    )
    return 1 if (rejected and args.strict) else 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="paperhand", description="Paper-hand settlement engine tooling")
    ap.add_argument("--log-level", type=str, default="WARNING")
    sub = ap.add_subparsers(dest="command", required=True)

    qb = sub.add_parser("quote-buy", help="preview a buy against given reserves")
    qb.add_argument("--reserve-token", type=int, required=True)
    qb.add_argument("--reserve-base", type=int, required=True)
    qb.add_argument("--amount", type=int, required=True, help="base currency in")
    qb.add_argument("--fee", type=str, default="1", help="fee percentage (1 means 1%%)")
    qb.set_defaults(func=_cmd_quote_buy)

    qs = sub.add_parser("quote-sell", help="preview a sell, including loss tax")
    qs.add_argument("--reserve-token", type=int, required=True)
    qs.add_argument("--reserve-base", type=int, required=True)
    qs.add_argument("--amount", type=int, required=True, help="tokens in")
    qs.add_argument("--total-tokens", type=int, default=None, help="position size (default: --amount)")
    qs.add_argument("--total-cost", type=int, required=True, help="position cost basis")
    qs.add_argument("--fee", type=str, default="1")
    qs.add_argument("--tax-bps", type=int, default=DEFAULT_LOSS_TAX_BPS)
    qs.set_defaults(func=_cmd_quote_sell)

    dc = sub.add_parser("decode", help="decode a persisted record")
    dc.add_argument("--kind", choices=sorted(DECODERS), required=True)
    dc.add_argument("hex")
    dc.set_defaults(func=_cmd_decode)

    sm = sub.add_parser("simulate", help="replay a YAML scenario through the in-memory host")
    sm.add_argument("scenario")
    sm.add_argument("--config", type=str, default="")
    sm.add_argument("--strict", action="store_true", help="exit 1 if any operation was rejected")
    sm.set_defaults(func=_cmd_simulate)
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return args.func(args)
    except (SettlementError, ValueError, TypeError, OSError, yaml.YAMLError) as err:
        code = err.code if isinstance(err, SettlementError) else type(err).__name__
        sys.stderr.write(f"error: {code}: {err}\n")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
