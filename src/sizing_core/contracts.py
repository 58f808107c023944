"""
Data contracts for sizing-core: enums, ResizingStep, FeeSchedule.

Plain dataclasses, no I/O. Persisted JSON uses the camelCase field names
(``orderType``, ``isFilled`` ...); attributes are snake_case.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Side(str, Enum):
    """Direction of a position."""

    LONG = "long"
    SHORT = "short"


class PositionStatus(str, Enum):
    """Lifecycle state. Transitions only move forward."""

    PLANNING = "planning"
    OPENED = "opened"
    CLOSED = "closed"


class OrderType(str, Enum):
    """Fee class of an entry order."""

    MAKER = "maker"
    TAKER = "taker"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class FeeSchedule:
    """Maker/taker fee rates as fractions (0.0005 == 0.05%)."""

    maker_fee: float = 0.0
    taker_fee: float = 0.0

    def rate_for(self, order_type: OrderType | str) -> float:
        if OrderType(order_type) == OrderType.MAKER:
            return self.maker_fee
        return self.taker_fee


@dataclass
class ResizingStep:
    """One planned or chase entry.

    ``cost`` caches size x price. ``predicted_be`` is the cumulative
    break-even including this step and every active entry before it.
    """

    id: str
    price: float = 0.0
    size: float = 0.0
    cost: float = 0.0
    order_type: OrderType = OrderType.TAKER
    fee: float = 0.0
    is_filled: bool = False
    is_closed: bool = False
    predicted_be: float = 0.0

    @classmethod
    def blank(cls) -> ResizingStep:
        return cls(id=new_id())

    @property
    def is_active(self) -> bool:
        return not self.is_closed

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "price": self.price,
            "size": self.size,
            "cost": self.cost,
            "orderType": self.order_type.value,
            "fee": self.fee,
            "isFilled": self.is_filled,
            "isClosed": self.is_closed,
            "predictedBE": self.predicted_be,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResizingStep:
        return cls(
            id=data.get("id") or new_id(),
            price=float(data.get("price") or 0.0),
            size=float(data.get("size") or 0.0),
            cost=float(data.get("cost") or 0.0),
            order_type=OrderType(data.get("orderType") or OrderType.TAKER.value),
            fee=float(data.get("fee") or 0.0),
            is_filled=bool(data.get("isFilled", False)),
            is_closed=bool(data.get("isClosed", False)),
            predicted_be=float(data.get("predictedBE") or 0.0),
        )
