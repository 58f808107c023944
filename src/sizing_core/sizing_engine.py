"""
Position Sizing Engine: Setup weights + risk budget + stop -> step sizes.

Reprices every unfilled, unclosed step so that at the stop-loss price the
total loss across all steps (filled + newly sized) stays within
``risk_amount``, subject to a leverage-implied notional cap. Then computes
fees and running break-even prices.

Rules:
    - Filled steps keep their size; only their cost/fee are refreshed.
    - Closed steps are frozen and excluded from every aggregate.
    - Chase steps are never sized here; their cost/fee follow their inputs.
    - No I/O, no exceptions: every invalid branch degrades to skip or zero.

All ratio and price-derived loss math runs on ``sizing_core.fixed_point``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sizing_core.contracts import FeeSchedule, ResizingStep, Side
from sizing_core.fixed_point import (
    ZERO,
    Fixed,
    add,
    div,
    from_fixed,
    fsum,
    mul,
    sub,
    to_fixed,
)

if TYPE_CHECKING:
    from sizing_core.position import Position
    from sizing_core.setup_plan import Setup

logger = logging.getLogger("planner.engine")


def _loss_per_unit(side: Side, price: Fixed, stop: Fixed) -> Fixed:
    """Loss per unit if the stop is hit. Negative when price is on the wrong side."""
    if side == Side.SHORT:
        return sub(stop, price)
    return sub(price, stop)


def _fee_rate(step: ResizingStep, fees: FeeSchedule | None) -> Fixed:
    if fees is None:
        return ZERO
    return to_fixed(fees.rate_for(step.order_type))


def _filled_risk(position: Position, stop: Fixed) -> Fixed:
    """Risk already committed by filled, unclosed steps (wrong-side steps add nothing)."""
    total = ZERO
    for step in position.steps:
        if not step.is_filled or step.is_closed:
            continue
        price = to_fixed(step.price)
        size = to_fixed(step.size)
        if price <= ZERO or size <= ZERO:
            continue
        lpu = _loss_per_unit(position.side, price, stop)
        if lpu <= ZERO:
            continue
        total = add(total, mul(size, lpu))
    return total


def _loss_per_cost(
    position: Position,
    weights: list[Fixed],
    unfilled_weight: Fixed,
    stop: Fixed,
) -> Fixed:
    """Weighted loss per unit of notional across the unfilled steps.

    A step priced on the wrong side of the stop contributes negatively.
    """
    if unfilled_weight <= ZERO:
        return ZERO
    total = ZERO
    for idx, step in enumerate(position.steps):
        if step.is_filled or step.is_closed:
            continue
        price = to_fixed(step.price)
        w = div(weights[idx], unfilled_weight)
        if price <= ZERO or w <= ZERO:
            continue
        loss_per_price = div(_loss_per_unit(position.side, price, stop), price)
        total = add(total, mul(w, loss_per_price))
        logger.debug(
            "step %d: w=%s loss_per_price=%s running loss_per_cost=%s",
            idx, w, loss_per_price, total,
        )
    return total


def _target_cost(
    remaining_risk: Fixed,
    loss_per_cost: Fixed,
    account_balance: float,
    leverage: float,
) -> Fixed:
    """Total notional that spends *remaining_risk*, clamped to balance x leverage."""
    if remaining_risk <= ZERO or loss_per_cost <= ZERO:
        return ZERO
    cost = div(remaining_risk, loss_per_cost)
    balance = to_fixed(account_balance)
    lev = to_fixed(leverage)
    if balance > ZERO and lev > ZERO:
        cap = mul(balance, lev)
        if cost > cap:
            logger.debug("target cost %s capped at %s (balance x leverage)", cost, cap)
            cost = cap
    return cost


def _distribute(
    position: Position,
    weights: list[Fixed],
    unfilled_weight: Fixed,
    total_cost: Fixed,
) -> dict[int, tuple[Fixed, Fixed]]:
    """Split *total_cost* over unfilled steps by normalized weight.

    Returns step index -> (size, cost). Unpriced steps get zeros.
    """
    plan: dict[int, tuple[Fixed, Fixed]] = {}
    for idx, step in enumerate(position.steps):
        if step.is_filled or step.is_closed:
            continue
        price = to_fixed(step.price)
        w = div(weights[idx], unfilled_weight)
        if price <= ZERO or w <= ZERO:
            plan[idx] = (ZERO, ZERO)
            continue
        step_cost = mul(total_cost, w)
        plan[idx] = (div(step_cost, price), step_cost)
    return plan


def _refresh_entries(
    position: Position,
    plan: dict[int, tuple[Fixed, Fixed]],
    fees: FeeSchedule | None,
) -> None:
    """Write size/cost/fee and walk the running break-even in list order."""
    entries: list[tuple[ResizingStep, int | None]] = [
        (step, idx) for idx, step in enumerate(position.steps)
    ]
    entries += [(step, None) for step in position.chase_steps]

    cum_size = cum_cost = ZERO
    filled_size = filled_cost = filled_fee = ZERO

    for step, idx in entries:
        if step.is_closed:
            continue
        price = to_fixed(step.price)
        if idx is not None and idx in plan:
            size, cost = plan[idx]
        else:
            size = to_fixed(step.size)
            cost = mul(price, size) if price > ZERO else ZERO
        fee = mul(cost, _fee_rate(step, fees))

        step.size = from_fixed(size)
        step.cost = from_fixed(cost)
        step.fee = from_fixed(fee)

        if price > ZERO and size > ZERO:
            cum_size = add(cum_size, size)
            cum_cost = add(cum_cost, add(cost, fee))
            if step.is_filled:
                filled_size = add(filled_size, size)
                filled_cost = add(filled_cost, add(cost, fee))
                filled_fee = add(filled_fee, fee)
        step.predicted_be = from_fixed(div(cum_cost, cum_size))

    position.predicted_be = from_fixed(div(cum_cost, cum_size))
    position.current_be = from_fixed(div(filled_cost, filled_size))
    position.fee_total = from_fixed(filled_fee)


def recalculate(
    position: Position,
    setup: Setup,
    account_balance: float = 0.0,
    fees: FeeSchedule | None = None,
) -> None:
    """Resize the unfilled steps of *position* for its risk budget.

    Parameters
    ----------
    position:
        Position to mutate in place.
    setup:
        Plan whose weights line up with ``position.steps`` by index.
    account_balance:
        Balance for the margin cap (balance x leverage). 0 disables the cap.
    fees:
        Maker/taker rates. Omitted means no fees.
    """
    total_weight = fsum(to_fixed(w) for w in setup.weights)
    if total_weight <= ZERO:
        logger.debug("setup %s has no positive weight; nothing to size", setup.id)
        return

    stop = to_fixed(position.stop_loss_price)
    weights = [to_fixed(setup.weight_at(i)) for i in range(len(position.steps))]
    unfilled_weight = fsum(
        w for w, step in zip(weights, position.steps) if not step.is_filled
    )

    filled_risk = _filled_risk(position, stop)
    remaining_risk = max(sub(to_fixed(position.risk_amount), filled_risk), ZERO)
    loss_per_cost = _loss_per_cost(position, weights, unfilled_weight, stop)
    logger.debug(
        "position %s: filled_risk=%s remaining_risk=%s loss_per_cost=%s",
        position.id, filled_risk, remaining_risk, loss_per_cost,
    )

    plan: dict[int, tuple[Fixed, Fixed]] = {}
    if loss_per_cost > ZERO:
        total_cost = _target_cost(
            remaining_risk, loss_per_cost, account_balance, position.leverage,
        )
        logger.debug("position %s: distributing cost %s", position.id, total_cost)
        plan = _distribute(position, weights, unfilled_weight, total_cost)
    else:
        logger.debug("position %s: no sizeable steps; unfilled sizes kept", position.id)

    _refresh_entries(position, plan, fees)


def get_margin_estimate(position: Position) -> float:
    """Notional of active entries divided by leverage (raw notional if leverage <= 0)."""
    notional = ZERO
    for step in [*position.steps, *position.chase_steps]:
        if step.is_closed:
            continue
        notional = add(notional, mul(to_fixed(step.size), to_fixed(step.price)))
    leverage = to_fixed(position.leverage)
    if leverage <= ZERO:
        return from_fixed(notional)
    return from_fixed(div(notional, leverage))
