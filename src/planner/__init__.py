"""
Planner service: repository (state owner, referential rules, persistence,
subscribe/notify) and whole-data-set import/export.
"""

from planner.errors import ImportDataError, NotFound
from planner.repository import PlannerRepository
from planner.transfer import export_data, import_data

__all__ = [
    "export_data",
    "import_data",
    "ImportDataError",
    "NotFound",
    "PlannerRepository",
]
