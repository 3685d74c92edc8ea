"""
Operation parsing for the imperative shell.

Turns loosely-typed operation objects (YAML scenarios, JSON payloads) into
engine `Command`s. Unknown fields and actions are rejected.

Shapes:
    {"action": "buy", "pool": ID, "wallet": ID, "amount_in": INT}
    {"action": "sell", "pool": ID, "wallet": ID, "tokens_in": INT}
    {"action": "add_liquidity", "pool": ID, "token_amount": INT, "base_amount": INT,
     "provider": ID (optional)}
    {"action": "update_config", "caller": ID, "fee_rate": DEC (optional),
     "loss_tax_bps": INT (optional), "treasury_address": ID (optional)}
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Dict, Optional

from ..core.types import Action, Command
from ..state.config import FeeRate


_ALLOWED_KEYS: Dict[Action, frozenset[str]] = {
    Action.BUY: frozenset({"action", "pool", "wallet", "amount_in"}),
    Action.SELL: frozenset({"action", "pool", "wallet", "tokens_in"}),
    Action.ADD_LIQUIDITY: frozenset({"action", "pool", "token_amount", "base_amount", "provider"}),
    Action.UPDATE_CONFIG: frozenset({"action", "caller", "fee_rate", "loss_tax_bps", "treasury_address"}),
}


def _require_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    if not value:
        raise ValueError(f"{name} must be non-empty")
    return value


def _optional_str(value: Any, *, name: str) -> Optional[str]:
    if value is None:
        return None
    return _require_str(value, name=name)


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an int")
    return int(value)


def _optional_int(value: Any, *, name: str) -> Optional[int]:
    if value is None:
        return None
    return _require_int(value, name=name)


def coerce_fee_rate(value: Any, *, name: str = "fee_rate") -> FeeRate:
    """
    Accept a fee percentage as written in YAML/JSON.

    Floats go through `str` so `1.0` and `"1.0"` parse to the same Decimal;
    range and resolution checks are left to `normalize_fee_rate`.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number or numeric string")
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (int, str, Decimal)):
        return value
    raise ValueError(f"{name} must be a number or numeric string")


def parse_action(value: Any) -> Action:
    if not isinstance(value, str):
        raise ValueError("action must be a string")
    try:
        return Action(value.strip().lower())
    except ValueError as exc:
        raise ValueError(f"unknown action: {value!r}") from exc


def parse_command(obj: Any) -> Command:
    """Parse one operation object into a `Command`."""
    if not isinstance(obj, Mapping):
        raise ValueError("operation must be an object")
    for k in obj.keys():
        if not isinstance(k, str):
            raise ValueError("operation keys must be strings")

    action = parse_action(obj.get("action"))
    unknown = set(obj.keys()) - _ALLOWED_KEYS[action]
    if unknown:
        raise ValueError(f"unknown fields for {action.value}: {sorted(unknown)}")

    if action is Action.BUY:
        return Command(
            action=action,
            pool=_require_str(obj.get("pool"), name="pool"),
            wallet=_require_str(obj.get("wallet"), name="wallet"),
            amount=_require_int(obj.get("amount_in"), name="amount_in"),
        )
    if action is Action.SELL:
        return Command(
            action=action,
            pool=_require_str(obj.get("pool"), name="pool"),
            wallet=_require_str(obj.get("wallet"), name="wallet"),
            amount=_require_int(obj.get("tokens_in"), name="tokens_in"),
        )
    if action is Action.ADD_LIQUIDITY:
        return Command(
            action=action,
            pool=_require_str(obj.get("pool"), name="pool"),
            wallet=_optional_str(obj.get("provider"), name="provider") or "",
            amount=_require_int(obj.get("token_amount"), name="token_amount"),
            base_amount=_require_int(obj.get("base_amount"), name="base_amount"),
        )

    fee = obj.get("fee_rate")
    return Command(
        action=action,
        caller=_require_str(obj.get("caller"), name="caller"),
        new_fee=None if fee is None else coerce_fee_rate(fee),
        new_tax_bps=_optional_int(obj.get("loss_tax_bps"), name="loss_tax_bps"),
        new_treasury=_optional_str(obj.get("treasury_address"), name="treasury_address"),
    )


def command_to_dict(command: Command) -> Dict[str, Any]:
    """Inverse of `parse_command` (omits optional fields that are unset)."""
    action = command.action
    if action is Action.BUY:
        return {"action": action.value, "pool": command.pool, "wallet": command.wallet, "amount_in": command.amount}
    if action is Action.SELL:
        return {"action": action.value, "pool": command.pool, "wallet": command.wallet, "tokens_in": command.amount}
    if action is Action.ADD_LIQUIDITY:
        out: Dict[str, Any] = {
            "action": action.value,
            "pool": command.pool,
            "token_amount": command.amount,
            "base_amount": command.base_amount,
        }
        if command.wallet:
            out["provider"] = command.wallet
        return out
    out = {"action": action.value, "caller": command.caller}
    if command.new_fee is not None:
        out["fee_rate"] = str(command.new_fee)
    if command.new_tax_bps is not None:
        out["loss_tax_bps"] = command.new_tax_bps
    if command.new_treasury is not None:
        out["treasury_address"] = command.new_treasury
    return out
