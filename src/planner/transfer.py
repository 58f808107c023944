"""
Import / export of the whole planner data set as plain JSON.

Export:  {"version": 1, "accounts": [...], "setups": [...], "positions": [...]}
Import:  parse -> validate against docs/schema/planner_export.schema.json ->
         rebuild models -> replace everything in one bulk write.

Imported positions are taken as-is; their derived fields reflect the
values last computed before export.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jsonschema

from planner.errors import ImportDataError
from sizing_core.account import Account
from sizing_core.position import Position
from sizing_core.setup_plan import Setup

if TYPE_CHECKING:
    from planner.repository import PlannerRepository

logger = logging.getLogger("planner.transfer")

EXPORT_VERSION = 1

# ---------------------------------------------------------------------------
# Project root detection (walk up from this file to find pyproject.toml)
# ---------------------------------------------------------------------------


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    Falls back to CWD when the package is installed away from the repo.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "schema" / "planner_export.schema.json"


def export_payload(repository: PlannerRepository) -> dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "accounts": [a.to_dict() for a in repository.accounts()],
        "setups": [s.to_dict() for s in repository.setups(include_deleted=True)],
        "positions": [p.to_dict() for p in repository.positions()],
    }


def export_data(repository: PlannerRepository) -> str:
    """Serialize every account, setup (deleted ones too) and position."""
    return json.dumps(export_payload(repository), indent=2)


def _validate_schema(data: Any, schema_path: Path) -> None:
    if not schema_path.exists():
        raise ImportDataError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise ImportDataError(f"Import data failed validation: {exc.message}") from exc


def import_data(
    repository: PlannerRepository,
    text: str,
    schema_path: str | Path | None = None,
) -> dict[str, int]:
    """Replace the repository's data with *text*.

    Returns record counts. Raises ``ImportDataError`` and changes nothing
    when the text is not valid JSON or does not match the schema.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ImportDataError(f"Import data is not valid JSON: {exc}") from exc

    _validate_schema(data, Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH)

    accounts = [Account.from_dict(d) for d in data.get("accounts", [])]
    setups = [Setup.from_dict(d) for d in data.get("setups", [])]
    positions = [Position.from_dict(d) for d in data.get("positions", [])]
    repository.replace_all(accounts, setups, positions)
    logger.info(
        "Imported %d accounts, %d setups, %d positions",
        len(accounts), len(setups), len(positions),
    )
    return {"accounts": len(accounts), "setups": len(setups), "positions": len(positions)}
