"""
sizing-core: pure risk-driven position sizing.

No I/O, no network, no side effects beyond mutating the Position handed
in. Setup weights + risk budget + stop loss -> per-step size, cost, fee
and break-even prices.
"""

from sizing_core.account import Account
from sizing_core.contracts import (
    FeeSchedule,
    OrderType,
    PositionStatus,
    ResizingStep,
    Side,
)
from sizing_core.errors import (
    EditRejected,
    InvalidTransition,
    PlannerError,
    SetupValidationError,
)
from sizing_core.position import Position
from sizing_core.setup_plan import Setup, apply_plan
from sizing_core.sizing_engine import get_margin_estimate, recalculate
from sizing_core.validation import ValidationResult, validate_position

__all__ = [
    "Account",
    "apply_plan",
    "EditRejected",
    "FeeSchedule",
    "get_margin_estimate",
    "InvalidTransition",
    "OrderType",
    "PlannerError",
    "Position",
    "PositionStatus",
    "recalculate",
    "ResizingStep",
    "Setup",
    "SetupValidationError",
    "Side",
    "validate_position",
    "ValidationResult",
]
