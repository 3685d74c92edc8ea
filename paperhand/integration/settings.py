"""
Deployment settings and scenario files (YAML).

Settings file:

    fee_rate: "1.0"
    loss_tax_bps: 5000
    treasury_address: "0x..."
    admin: "0x..."

Scenario file (used by `paperhand simulate`):

    config: {...settings mapping...}   # optional if a settings file is given
    operations:
      - {action: add_liquidity, pool: "0x...", token_amount: 1000, base_amount: 30}
      - {action: buy, pool: "0x...", wallet: "0x...", amount_in: 5}
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import yaml

from ..core.types import Command
from ..state.config import DEFAULT_LOSS_TAX_BPS, Configuration
from .operations import coerce_fee_rate, parse_command


CONFIG_ENV_VAR = "PAPERHAND_CONFIG"

_SETTINGS_KEYS = frozenset({"fee_rate", "loss_tax_bps", "treasury_address", "admin"})
_REQUIRED_SETTINGS_KEYS = frozenset({"fee_rate", "treasury_address", "admin"})
_SCENARIO_KEYS = frozenset({"config", "operations"})


@dataclass(frozen=True)
class Scenario:
    config: Optional[Configuration]
    operations: List[Command]


def _load_yaml_mapping(path: Path, *, what: str) -> Mapping[str, Any]:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise TypeError(f"{what} YAML must be a mapping")
    return obj


def config_from_mapping(obj: Mapping[str, Any]) -> Configuration:
    """Build a Configuration from a settings mapping; unknown keys are rejected."""
    if not isinstance(obj, Mapping):
        raise TypeError("settings must be a mapping")
    unknown = set(obj.keys()) - _SETTINGS_KEYS
    if unknown:
        raise ValueError(f"unknown settings keys: {sorted(map(str, unknown))}")
    missing = _REQUIRED_SETTINGS_KEYS - set(obj.keys())
    if missing:
        raise ValueError(f"missing settings keys: {sorted(missing)}")

    return Configuration(
        fee_rate=coerce_fee_rate(obj["fee_rate"]),
        treasury_address=obj["treasury_address"],
        admin=obj["admin"],
        loss_tax_bps=obj.get("loss_tax_bps", DEFAULT_LOSS_TAX_BPS),
    )


def load_settings(path: Path) -> Configuration:
    return config_from_mapping(_load_yaml_mapping(path, what="settings"))


def settings_path_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Path named by `PAPERHAND_CONFIG`, or None when unset/empty."""
    env = os.environ if environ is None else environ
    raw = env.get(CONFIG_ENV_VAR, "").strip()
    return Path(raw) if raw else None


def load_scenario(path: Path) -> Scenario:
    obj = _load_yaml_mapping(path, what="scenario")
    unknown = set(obj.keys()) - _SCENARIO_KEYS
    if unknown:
        raise ValueError(f"unknown scenario keys: {sorted(map(str, unknown))}")

    raw_config = obj.get("config")
    config = None if raw_config is None else config_from_mapping(raw_config)

    raw_ops = obj.get("operations") or []
    if not isinstance(raw_ops, list):
        raise ValueError("operations must be a list")
    operations = []
    for i, op in enumerate(raw_ops):
        try:
            operations.append(parse_command(op))
        except ValueError as exc:
            raise ValueError(f"operations[{i}]: {exc}") from exc
    return Scenario(config=config, operations=operations)
