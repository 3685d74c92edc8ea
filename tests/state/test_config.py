from __future__ import annotations

from decimal import Decimal

import pytest

from paperhand.errors import InvalidConfig, InvalidFee, InvalidTaxBps
from paperhand.state.config import (
    Configuration,
    fee_rate_to_bps,
    normalize_fee_rate,
    validate_loss_tax_bps,
)

ADMIN = "0x" + "ad" * 32
TREASURY = "0x" + "7e" * 32


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1, Decimal(1)),
        ("1", Decimal(1)),
        (" 2.5 ", Decimal("2.5")),
        (Decimal("0.01"), Decimal("0.01")),
        (0, Decimal(0)),
        (100, Decimal(100)),
    ],
)
def test_normalize_fee_rate(raw, expected) -> None:
    assert normalize_fee_rate(raw) == expected


@pytest.mark.parametrize("raw", [1.0, True, "0.001", "100.01", -1, "nan", "inf", "one", None])
def test_normalize_fee_rate_rejects(raw) -> None:
    with pytest.raises(InvalidFee):
        normalize_fee_rate(raw)


def test_fee_rate_to_bps() -> None:
    assert fee_rate_to_bps("1") == 100
    assert fee_rate_to_bps("2.5") == 250
    assert fee_rate_to_bps(Decimal("0.01")) == 1


def test_loss_tax_bps_bounds() -> None:
    assert validate_loss_tax_bps(0) == 0
    assert validate_loss_tax_bps(10_000) == 10_000
    for bad in (-1, 10_001, False, "5000"):
        with pytest.raises(InvalidTaxBps):
            validate_loss_tax_bps(bad)


def test_invalid_fee_is_invalid_config() -> None:
    assert issubclass(InvalidFee, InvalidConfig)
    assert issubclass(InvalidTaxBps, InvalidConfig)


def test_configuration_canonicalizes() -> None:
    cfg = Configuration(fee_rate="1.50", treasury_address=TREASURY[2:].upper(), admin=ADMIN.upper())
    assert cfg.fee_rate == Decimal("1.5")
    assert cfg.fee_bps == 150
    assert cfg.loss_tax_bps == 5000
    assert cfg.treasury_address == TREASURY
    assert cfg.admin == ADMIN


def test_is_admin() -> None:
    cfg = Configuration(fee_rate=1, treasury_address=TREASURY, admin=ADMIN)
    assert cfg.is_admin(ADMIN)
    assert cfg.is_admin(ADMIN[2:])
    assert not cfg.is_admin(TREASURY)
    assert not cfg.is_admin("garbage")
    assert not cfg.is_admin(None)


def test_configuration_rejects_bad_values() -> None:
    with pytest.raises(InvalidTaxBps):
        Configuration(fee_rate=1, treasury_address=TREASURY, admin=ADMIN, loss_tax_bps=10_001)
    with pytest.raises(ValueError):
        Configuration(fee_rate=1, treasury_address="0x12", admin=ADMIN)
