"""Loss-conditional sell tax.

A sale is a loss when its pre-tax proceeds are strictly below the cost basis
of the tokens sold. Break-even is not a loss. Loss sales forfeit
``floor(sol_out * loss_tax_bps / 10_000)`` to the treasury.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..state.config import validate_loss_tax_bps
from .math import apply_bps


@dataclass(frozen=True)
class TaxAssessment:
    sol_out: int
    cost_basis: int
    is_loss: bool
    tax: int
    net_out: int


def is_loss(sol_out: int, cost_basis: int) -> bool:
    return sol_out < cost_basis


def compute_tax(sol_out: int, loss_tax_bps: int) -> int:
    validate_loss_tax_bps(loss_tax_bps)
    return apply_bps(sol_out, loss_tax_bps)


def assess_sale(sol_out: int, cost_basis: int, loss_tax_bps: int) -> TaxAssessment:
    if sol_out < 0 or cost_basis < 0:
        raise ValueError(f"sol_out and cost_basis must be non-negative: ({sol_out}, {cost_basis})")
    loss = is_loss(sol_out, cost_basis)
    tax = compute_tax(sol_out, loss_tax_bps) if loss else 0
    return TaxAssessment(
        sol_out=sol_out,
        cost_basis=cost_basis,
        is_loss=loss,
        tax=tax,
        net_out=sol_out - tax,
    )
