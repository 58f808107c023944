"""
Caller-side input checks run before the sizing engine.

The engine itself accepts anything and degrades to zeros; this module is
where non-finite numbers, a non-positive risk or leverage, and a stop on
the wrong side of the step prices are rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from sizing_core.contracts import Side
from sizing_core.position import Position


@dataclass
class ValidationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)


def _finite(value: float | None) -> bool:
    return value is not None and isinstance(value, (int, float)) and math.isfinite(value)


def validate_position(position: Position) -> ValidationResult:
    errors: list[str] = []

    for name in ("stop_loss_price", "risk_amount", "leverage"):
        if not _finite(getattr(position, name)):
            errors.append(f"{name} must be a finite number")
    for label, steps in (("step", position.steps), ("chase step", position.chase_steps)):
        for i, step in enumerate(steps):
            if not _finite(step.price) or not _finite(step.size):
                errors.append(f"{label} {i} has a non-finite price or size")
    if position.pnl is not None and not _finite(position.pnl):
        errors.append("pnl must be a finite number")
    if errors:
        return ValidationResult(ok=False, errors=errors)

    if position.risk_amount <= 0:
        errors.append("Risk amount must be greater than 0.")
    if position.leverage <= 0:
        errors.append("Leverage must be greater than 0.")

    prices = [s.price for s in (*position.steps, *position.chase_steps) if s.price > 0]
    # A stop of 0 means "not set yet" and is not checked against prices.
    if prices and position.stop_loss_price > 0:
        if position.side == Side.LONG and position.stop_loss_price >= min(prices):
            errors.append("Stop loss must be below the lowest step price for long.")
        elif position.side == Side.SHORT and position.stop_loss_price <= max(prices):
            errors.append("Stop loss must be above the highest step price for short.")

    return ValidationResult(ok=not errors, errors=errors)
