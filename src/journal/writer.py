"""
Structured journal: append-only JSON lines of position and setup lifecycle events.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "to_dict"):
        return _serialize(obj.to_dict())
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    @property
    def path(self) -> Path:
        return self._path

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def position_created(self, position_id: str, symbol: str, side: str, setup_id: str, risk_amount: float, **extra: Any) -> None:
        self._write(
            "position_created",
            {"position_id": position_id, "symbol": symbol, "side": side, "setup_id": setup_id, "risk_amount": risk_amount, **extra},
        )

    def position_opened(self, position_id: str, symbol: str, **extra: Any) -> None:
        self._write("position_opened", {"position_id": position_id, "symbol": symbol, **extra})

    def step_filled(self, position_id: str, index: int, price: float, size: float, chase: bool = False, **extra: Any) -> None:
        self._write(
            "step_filled",
            {"position_id": position_id, "index": index, "price": price, "size": size, "chase": chase, **extra},
        )

    def step_closed(self, position_id: str, index: int, chase: bool = False, **extra: Any) -> None:
        self._write("step_closed", {"position_id": position_id, "index": index, "chase": chase, **extra})

    def position_closed(self, position_id: str, symbol: str, pnl: float, fee_total: float, **extra: Any) -> None:
        self._write(
            "position_closed",
            {"position_id": position_id, "symbol": symbol, "pnl": pnl, "fee_total": fee_total, **extra},
        )

    def setup_deleted(self, setup_id: str, name: str, mode: str, **extra: Any) -> None:
        self._write("setup_deleted", {"setup_id": setup_id, "name": name, "mode": mode, **extra})
