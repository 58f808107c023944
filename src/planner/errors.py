"""Errors raised by the planner service layer."""

from sizing_core.errors import PlannerError


class NotFound(PlannerError):
    """Raised when an account, setup or position id is unknown."""


class ImportDataError(PlannerError):
    """Raised when import data is not valid JSON or fails schema validation."""
