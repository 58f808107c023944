"""
Storage: SQLite persistence for accounts, setups and positions.

Depends on sizing_core for the record types; no dependency back.
"""

from storage.planner_store import PlannerStore

__all__ = ["PlannerStore"]
