"""
Typed position edits.

Each edit is a frozen dataclass with ``apply(position)``. ``apply_edits``
runs a batch against a deep copy, so a rejected edit never leaves the
caller's Position half-changed. The repository wraps this with
validation, recalculation and persistence.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass
from typing import Iterable, Protocol

from sizing_core.contracts import OrderType, Side
from sizing_core.errors import EditRejected, InvalidTransition
from sizing_core.position import Position


class Edit(Protocol):
    def apply(self, position: Position) -> None: ...


def _editable_step(position: Position, index: int, chase: bool = False):
    try:
        step = position.step_at(index, chase)
    except IndexError as exc:
        raise EditRejected(str(exc)) from exc
    if step.is_closed:
        raise EditRejected(f"{'chase step' if chase else 'step'} {index} is closed")
    return step


@dataclass(frozen=True)
class SetStopLoss:
    price: float

    def apply(self, position: Position) -> None:
        position.stop_loss_price = self.price


@dataclass(frozen=True)
class SetRiskAmount:
    amount: float

    def apply(self, position: Position) -> None:
        position.risk_amount = self.amount


@dataclass(frozen=True)
class SetLeverage:
    leverage: float

    def apply(self, position: Position) -> None:
        position.leverage = self.leverage


@dataclass(frozen=True)
class SetSide:
    side: Side

    def apply(self, position: Position) -> None:
        position.side = Side(self.side)


@dataclass(frozen=True)
class SetSymbol:
    symbol: str

    def apply(self, position: Position) -> None:
        position.symbol = self.symbol.strip().upper()


@dataclass(frozen=True)
class SetStepPrice:
    index: int
    price: float

    def apply(self, position: Position) -> None:
        _editable_step(position, self.index).price = self.price


@dataclass(frozen=True)
class SetStepOrderType:
    index: int
    order_type: OrderType
    chase: bool = False

    def apply(self, position: Position) -> None:
        _editable_step(position, self.index, self.chase).order_type = OrderType(self.order_type)


@dataclass(frozen=True)
class SetFilled:
    index: int
    filled: bool = True
    chase: bool = False

    def apply(self, position: Position) -> None:
        try:
            position.set_filled(self.index, self.filled, self.chase)
        except (IndexError, InvalidTransition) as exc:
            raise EditRejected(str(exc)) from exc


@dataclass(frozen=True)
class CloseStep:
    index: int
    chase: bool = False

    def apply(self, position: Position) -> None:
        _editable_step(position, self.index, self.chase)
        try:
            position.close_step(self.index, self.chase)
        except InvalidTransition as exc:
            raise EditRejected(str(exc)) from exc


@dataclass(frozen=True)
class AddChaseStep:
    price: float = 0.0
    size: float = 0.0
    order_type: OrderType = OrderType.TAKER

    def apply(self, position: Position) -> None:
        step = position.add_chase_step()
        step.order_type = OrderType(self.order_type)
        position.set_chase_entry(len(position.chase_steps) - 1, price=self.price, size=self.size)


@dataclass(frozen=True)
class SetChaseEntry:
    index: int
    price: float | None = None
    size: float | None = None

    def apply(self, position: Position) -> None:
        _editable_step(position, self.index, chase=True)
        position.set_chase_entry(self.index, price=self.price, size=self.size)


@dataclass(frozen=True)
class RemoveChaseStep:
    index: int

    def apply(self, position: Position) -> None:
        try:
            position.remove_chase_step(self.index)
        except IndexError as exc:
            raise EditRejected(str(exc)) from exc


@dataclass(frozen=True)
class SetPnl:
    """Realized net result; None clears it."""

    pnl: float | None

    def apply(self, position: Position) -> None:
        position.pnl = self.pnl


@dataclass(frozen=True)
class ClosePosition:
    closed_at: int | None = None

    def apply(self, position: Position) -> None:
        if position.pnl is None or not math.isfinite(position.pnl):
            raise EditRejected("Set the realized PnL before closing the position.")
        try:
            position.close(self.closed_at)
        except InvalidTransition as exc:
            raise EditRejected(str(exc)) from exc


def apply_edits(position: Position, edits: Iterable[Edit]) -> Position:
    """Return a copy of *position* with *edits* applied in order."""
    updated = copy.deepcopy(position)
    for edit in edits:
        edit.apply(updated)
    return updated
