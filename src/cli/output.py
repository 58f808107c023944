"""
Human-readable planner output for the terminal.

Every CLI command uses these formatters; the numbers shown are the ones the
sizing engine last wrote onto the Position.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sizing_core.contracts import ResizingStep

if TYPE_CHECKING:
    from sizing_core.account import Account
    from sizing_core.position import Position
    from sizing_core.setup_plan import Setup


def _fmt_num(value: float, places: int = 4) -> str:
    return f"{value:,.{places}f}"


def _step_flags(step: ResizingStep) -> str:
    if step.is_closed:
        return "closed"
    if step.is_filled:
        return "filled"
    return "-"


def _format_step_rows(label: str, steps: list[ResizingStep]) -> list[str]:
    rows = []
    for i, step in enumerate(steps):
        rows.append(
            f"  {label}{i:<3d} {_fmt_num(step.price, 2):>12s} {_fmt_num(step.size):>12s} "
            f"{_fmt_num(step.cost, 2):>12s} {_fmt_num(step.fee, 4):>10s} "
            f"{step.order_type.value:>6s} {_fmt_num(step.predicted_be, 2):>12s}  {_step_flags(step)}"
        )
    return rows


def format_position(position: Position, setup: Setup | None = None, account: Account | None = None) -> str:
    """Format one position: inputs, step table, derived totals."""
    if setup is None:
        setup_name = "Manual" if not position.setup_id else "Unknown"
    else:
        setup_name = setup.name + (" (deleted)" if setup.is_deleted else "")

    lines = [
        f"=== Position {position.symbol} {position.side.value.upper()} [{position.status.value.upper()}] ===",
        f"Id           : {position.id}",
        f"Setup        : {setup_name}",
        f"Risk amount  : {_fmt_num(position.risk_amount, 2)}",
        f"Stop loss    : {_fmt_num(position.stop_loss_price, 2)}",
        f"Leverage     : {position.leverage:g}x",
        "",
        f"  {'#':<4s} {'Price':>12s} {'Size':>12s} {'Cost':>12s} {'Fee':>10s} {'Type':>6s} {'Pred. BE':>12s}  State",
    ]
    lines += _format_step_rows("", position.steps) or ["  (no steps)"]
    if position.chase_steps:
        lines.append("  -- chase --")
        lines += _format_step_rows("c", position.chase_steps)

    lines += [
        "",
        f"Total size   : {_fmt_num(position.total_size)}",
        f"Total cost   : {_fmt_num(position.total_cost, 2)}",
        f"Planned risk : {_fmt_num(position.planned_risk, 2)}",
        f"Fees (filled): {_fmt_num(position.fee_total, 4)}",
        f"Current BE   : {_fmt_num(position.current_be, 2)}",
        f"Predicted BE : {_fmt_num(position.predicted_be, 2)}",
        f"Margin est.  : {_fmt_num(position.margin_estimate(), 2)}",
    ]
    if account is not None:
        lines.append(f"Margin usage : {position.margin_usage_pct(account.current_balance or 0.0):.1f}% of {account.name}")
    if position.pnl is not None:
        lines.append(f"Realized PnL : {_fmt_num(position.pnl, 2)}")
    return "\n".join(lines)


def format_positions(positions: list[Position]) -> str:
    if not positions:
        return "No positions."
    lines = [f"{'Id':36s}  {'Symbol':10s} {'Side':5s} {'Status':8s} {'Risk':>10s} {'Pred. BE':>12s}"]
    for p in positions:
        lines.append(
            f"{p.id:36s}  {p.symbol:10s} {p.side.value:5s} {p.status.value:8s} "
            f"{_fmt_num(p.risk_amount, 2):>10s} {_fmt_num(p.predicted_be, 2):>12s}"
        )
    return "\n".join(lines)


def format_setups(setups: list[Setup]) -> str:
    if not setups:
        return "No setups."
    lines = []
    for s in setups:
        weights = ", ".join(f"{w:g}" for w in s.weights)
        deleted = "  (deleted)" if s.is_deleted else ""
        lines.append(f"{s.id}  {s.name}  steps={s.step_count}  weights=[{weights}]{deleted}")
    return "\n".join(lines)


def format_accounts(accounts: list[Account]) -> str:
    if not accounts:
        return "No accounts."
    lines = []
    for a in accounts:
        lines.append(
            f"{a.id}  {a.name}  balance={_fmt_num(a.current_balance or 0.0, 2)}  "
            f"maker={a.maker_fee:.4%}  taker={a.taker_fee:.4%}"
        )
    return "\n".join(lines)
