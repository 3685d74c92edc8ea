"""Error taxonomy for the settlement engine.

Every engine failure is a `SettlementError` subclass. The `code` attribute is
the stable kind name used in step rejections and host logs.

Errors are raised before any new state is built, so a raised error always
means "nothing changed".
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for all engine failures."""

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidAmount(SettlementError):
    """Zero, negative, non-integer or out-of-range amount."""


class InsufficientLiquidity(SettlementError):
    """A reserve is zero, or the pool does not exist."""


class InsufficientOutput(SettlementError):
    """The computed swap output rounds down to zero."""


class InsufficientPosition(SettlementError):
    """Sell with no tracked position, or more tokens than the position holds."""


class ArithmeticOverflow(SettlementError):
    """A result would leave the unsigned 64-bit domain."""


class Unauthorized(SettlementError):
    """Configuration mutation by a caller other than the admin."""


class InvalidConfig(SettlementError):
    """Configuration value outside its allowed range."""


class InvalidFee(InvalidConfig):
    """Fee rate outside [0, 100] percent or finer than 0.01%."""


class InvalidTaxBps(InvalidConfig):
    """Loss tax outside [0, 10000] basis points."""


class InvariantViolation(SettlementError):
    """Raised when a post-state violates one or more invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


class LayoutError(ValueError):
    """A persisted record could not be decoded."""
