"""Trading account: balance for the margin cap and the fee schedule."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from sizing_core.contracts import FeeSchedule, PositionStatus, new_id
from sizing_core.position import Position


@dataclass
class Account:
    id: str = field(default_factory=new_id)
    name: str = "Main Account"
    initial_balance: float = 10_000.0
    current_balance: float | None = None
    maker_fee: float = 0.0002
    taker_fee: float = 0.0005

    def __post_init__(self) -> None:
        if self.current_balance is None:
            self.current_balance = self.initial_balance

    @property
    def fees(self) -> FeeSchedule:
        return FeeSchedule(maker_fee=self.maker_fee, taker_fee=self.taker_fee)

    def realized_stats(self, positions: Iterable[Position]) -> dict[str, float]:
        """Realized PnL and fees over this account's closed positions.

        Also moves ``current_balance`` to initial balance + realized PnL
        (pnl is taken as net of fees).
        """
        realized_pnl = 0.0
        total_fees = 0.0
        for p in positions:
            if p.account_id != self.id:
                continue
            if p.status == PositionStatus.CLOSED and p.pnl is not None:
                realized_pnl += p.pnl
                total_fees += p.fee_total
        self.current_balance = self.initial_balance + realized_pnl
        return {
            "realized_pnl": realized_pnl,
            "total_fees": total_fees,
            "current_balance": self.current_balance,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "initialBalance": self.initial_balance,
            "currentBalance": self.current_balance,
            "makerFee": self.maker_fee,
            "takerFee": self.taker_fee,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        current = data.get("currentBalance")
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name") or "Main Account",
            initial_balance=float(data.get("initialBalance", 10_000.0)),
            current_balance=float(current) if current is not None else None,
            maker_fee=float(data.get("makerFee", 0.0002)),
            taker_fee=float(data.get("takerFee", 0.0005)),
        )
