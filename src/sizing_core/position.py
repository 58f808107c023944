"""
Position aggregate: owns planned steps and chase steps, the lifecycle state
machine (planning -> opened -> closed), and read-only derived metrics.

The sizing engine writes ``fee_total``, ``current_be``, ``predicted_be`` and
the per-step size/cost/fee; everything else here is caller-driven.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from sizing_core.contracts import (
    PositionStatus,
    ResizingStep,
    Side,
    new_id,
)
from sizing_core.errors import InvalidTransition
from sizing_core.fixed_point import ZERO, add, from_fixed, mul, sub, to_fixed
from sizing_core.sizing_engine import get_margin_estimate


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Position:
    id: str = field(default_factory=new_id)
    account_id: str = ""
    side: Side = Side.LONG
    symbol: str = ""
    setup_id: str = ""
    status: PositionStatus = PositionStatus.PLANNING
    stop_loss_price: float = 0.0
    risk_amount: float = 100.0
    leverage: float = 1.0
    steps: list[ResizingStep] = field(default_factory=list)
    chase_steps: list[ResizingStep] = field(default_factory=list)
    pnl: float | None = None
    fee_total: float = 0.0
    current_be: float = 0.0
    predicted_be: float = 0.0
    created_at: int = field(default_factory=now_ms)
    closed_at: int | None = None

    # ------------------------------------------------------------------
    # Step access
    # ------------------------------------------------------------------

    def step_list(self, chase: bool = False) -> list[ResizingStep]:
        return self.chase_steps if chase else self.steps

    def step_at(self, index: int, chase: bool = False) -> ResizingStep:
        steps = self.step_list(chase)
        if not 0 <= index < len(steps):
            kind = "chase step" if chase else "step"
            raise IndexError(f"{kind} {index} out of range (have {len(steps)})")
        return steps[index]

    def active_entries(self) -> list[ResizingStep]:
        """Planned and chase steps that are not closed."""
        return [s for s in (*self.steps, *self.chase_steps) if not s.is_closed]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_filled(self, index: int, filled: bool, chase: bool = False) -> None:
        """Toggle a fill. The first fill opens a planning position; un-filling un-closes."""
        step = self.step_at(index, chase)
        if self.status == PositionStatus.CLOSED:
            raise InvalidTransition(f"position {self.id} is closed")
        step.is_filled = filled
        if not filled:
            step.is_closed = False
        elif self.status == PositionStatus.PLANNING:
            self.status = PositionStatus.OPENED

    def close_step(self, index: int, chase: bool = False) -> None:
        step = self.step_at(index, chase)
        if not step.is_filled:
            raise InvalidTransition("only a filled step can be closed")
        step.is_closed = True

    def close(self, closed_at: int | None = None) -> None:
        if self.status != PositionStatus.OPENED:
            raise InvalidTransition(
                f"cannot close a position in status {self.status.value}"
            )
        self.status = PositionStatus.CLOSED
        self.closed_at = closed_at if closed_at is not None else now_ms()

    # ------------------------------------------------------------------
    # Chase steps
    # ------------------------------------------------------------------

    def add_chase_step(self) -> ResizingStep:
        step = ResizingStep.blank()
        self.chase_steps.append(step)
        return step

    def remove_chase_step(self, index: int) -> None:
        self.step_at(index, chase=True)
        del self.chase_steps[index]

    def set_chase_entry(
        self,
        index: int,
        *,
        price: float | None = None,
        size: float | None = None,
    ) -> None:
        step = self.step_at(index, chase=True)
        if price is not None:
            step.price = price
        if size is not None:
            step.size = size
        step.cost = from_fixed(mul(to_fixed(step.price), to_fixed(step.size)))

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------

    @property
    def total_size(self) -> float:
        total = ZERO
        for step in self.active_entries():
            total = add(total, to_fixed(step.size))
        return from_fixed(total)

    @property
    def total_cost(self) -> float:
        total = ZERO
        for step in self.active_entries():
            total = add(total, mul(to_fixed(step.size), to_fixed(step.price)))
        return from_fixed(total)

    @property
    def planned_risk(self) -> float:
        """Loss at the stop over active planned steps; wrong-side steps count as 0."""
        stop = to_fixed(self.stop_loss_price)
        total = ZERO
        for step in self.steps:
            if step.is_closed:
                continue
            price = to_fixed(step.price)
            if self.side == Side.SHORT:
                lpu = sub(stop, price)
            else:
                lpu = sub(price, stop)
            if price <= ZERO or lpu <= ZERO:
                continue
            total = add(total, mul(to_fixed(step.size), lpu))
        return from_fixed(total)

    def margin_estimate(self) -> float:
        return get_margin_estimate(self)

    def margin_usage_pct(self, account_balance: float) -> float:
        if account_balance <= 0:
            return 0.0
        return self.margin_estimate() / account_balance * 100

    # ------------------------------------------------------------------
    # Plain JSON
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "accountId": self.account_id,
            "side": self.side.value,
            "symbol": self.symbol,
            "setupId": self.setup_id,
            "status": self.status.value,
            "stopLossPrice": self.stop_loss_price,
            "riskAmount": self.risk_amount,
            "leverage": self.leverage,
            "steps": [s.to_dict() for s in self.steps],
            "chaseSteps": [s.to_dict() for s in self.chase_steps],
            "pnl": self.pnl,
            "feeTotal": self.fee_total,
            "currentBE": self.current_be,
            "predictedBE": self.predicted_be,
            "createdAt": self.created_at,
            "closedAt": self.closed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        pnl = data.get("pnl")
        closed_at = data.get("closedAt")
        return cls(
            id=data.get("id") or new_id(),
            account_id=data.get("accountId") or "",
            side=Side(data.get("side") or Side.LONG.value),
            symbol=data.get("symbol") or "",
            setup_id=data.get("setupId") or "",
            status=PositionStatus(data.get("status") or PositionStatus.PLANNING.value),
            stop_loss_price=float(data.get("stopLossPrice") or 0.0),
            risk_amount=float(data.get("riskAmount") or 100.0),
            leverage=float(data.get("leverage") or 1.0),
            steps=[ResizingStep.from_dict(s) for s in data.get("steps") or []],
            chase_steps=[ResizingStep.from_dict(s) for s in data.get("chaseSteps") or []],
            pnl=float(pnl) if pnl is not None else None,
            fee_total=float(data.get("feeTotal") or 0.0),
            current_be=float(data.get("currentBE") or 0.0),
            predicted_be=float(data.get("predictedBE") or 0.0),
            created_at=int(data.get("createdAt") or now_ms()),
            closed_at=int(closed_at) if closed_at is not None else None,
        )
