"""
Resizing plan (Setup): how many entries a strategy uses and their relative
cost weights, plus ``apply_plan`` which shapes a Position's step list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sizing_core.contracts import ResizingStep, new_id

if TYPE_CHECKING:
    from sizing_core.position import Position

logger = logging.getLogger("planner.engine")


@dataclass
class Setup:
    """Named entry plan. ``weights`` need not sum to 1.

    A length mismatch between ``weights`` and ``step_count`` is reconciled
    on construction: missing weights are padded with 1, extras are dropped.
    """

    id: str = field(default_factory=new_id)
    name: str = "Default Setup"
    step_count: int = 1
    weights: list[float] = field(default_factory=lambda: [1.0])
    is_deleted: bool = False

    def __post_init__(self) -> None:
        self.weights = [float(w) for w in self.weights]
        if len(self.weights) < self.step_count:
            self.weights += [1.0] * (self.step_count - len(self.weights))
        elif len(self.weights) > self.step_count:
            self.weights = self.weights[: max(self.step_count, 0)]

    def validation_errors(self) -> list[str]:
        errors: list[str] = []
        if self.step_count <= 0:
            errors.append("step count must be greater than 0")
        if len(self.weights) != self.step_count:
            errors.append(
                f"expected {self.step_count} weights, got {len(self.weights)}"
            )
        if any(w <= 0 for w in self.weights):
            errors.append("all weights must be greater than 0")
        return errors

    def validate(self) -> bool:
        return not self.validation_errors()

    def weight_at(self, index: int) -> float:
        if 0 <= index < len(self.weights):
            return self.weights[index]
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "stepCount": self.step_count,
            "weights": list(self.weights),
            "isDeleted": self.is_deleted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Setup:
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name") or "Default Setup",
            step_count=int(data.get("stepCount") or 1),
            weights=list(data.get("weights") or [1.0]),
            is_deleted=bool(data.get("isDeleted", False)),
        )


def apply_plan(position: Position, setup: Setup) -> None:
    """Attach *setup* to *position* and shape its step list.

    When the step count differs, the steps are replaced with fresh blank
    steps and any per-step prices or fill state are discarded. When it
    matches, the steps are left untouched.
    """
    position.setup_id = setup.id
    if len(position.steps) == setup.step_count:
        return

    discarded = sum(1 for s in position.steps if s.price > 0 or s.is_filled)
    if discarded:
        logger.info(
            "Setup %s reshapes position %s from %d to %d steps; %d edited step(s) discarded",
            setup.name, position.id, len(position.steps), setup.step_count, discarded,
        )
    position.steps = [ResizingStep.blank() for _ in range(setup.step_count)]
