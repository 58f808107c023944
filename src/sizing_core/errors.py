"""Domain errors raised by the calling layer around the sizing engine."""


class PlannerError(Exception):
    """Base class for planner errors."""


class InvalidTransition(PlannerError):
    """Raised when a lifecycle move is not allowed from the current state."""


class EditRejected(PlannerError):
    """Raised when an edit cannot be applied to a position."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or [message]


class SetupValidationError(PlannerError):
    """Raised when a setup fails validation on add or update."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid setup: " + "; ".join(errors))
        self.errors = errors
