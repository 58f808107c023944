"""Tests for whole-data-set JSON export/import."""

import json

import pytest

from planner import ImportDataError, PlannerRepository, export_data, import_data
from planner.transfer import DEFAULT_SCHEMA_PATH, EXPORT_VERSION
from sizing_core.account import Account
from sizing_core.edits import SetStepPrice
from sizing_core.setup_plan import Setup
from storage.planner_store import PlannerStore


def _populate(repo: PlannerRepository) -> None:
    acc = repo.add_account(Account(id="acc-1", name="Main"))
    kept = repo.add_setup(Setup(id="s-kept", name="Two", step_count=2, weights=[1, 2]))
    gone = repo.add_setup(Setup(id="s-gone", name="One"))
    p = repo.create_position(acc.id, "BTCUSDT", setup_id=gone.id, stop_loss_price=90)
    repo.edit_position(p.id, SetStepPrice(0, 100))
    repo.create_position(acc.id, "ETHUSDT", setup_id=kept.id)
    repo.delete_setup(gone.id)


def test_schema_file_ships_with_project() -> None:
    assert DEFAULT_SCHEMA_PATH.exists()


def test_export_includes_deleted_setups(repo: PlannerRepository) -> None:
    _populate(repo)
    data = json.loads(export_data(repo))
    assert data["version"] == EXPORT_VERSION
    assert {s["id"] for s in data["setups"]} == {"s-kept", "s-gone"}
    assert len(data["positions"]) == 2
    assert data["positions"][0]["steps"][0]["price"] == 100


def test_import_replaces_everything(repo: PlannerRepository, tmp_path) -> None:
    _populate(repo)
    text = export_data(repo)
    before = {p.id: p.to_dict() for p in repo.positions()}

    target = PlannerRepository(PlannerStore(tmp_path / "other.db"))
    target.add_account(Account(id="stale"))
    counts = import_data(target, text)

    assert counts == {"accounts": 1, "setups": 2, "positions": 2}
    assert [a.id for a in target.accounts()] == ["acc-1"]
    assert {p.id: p.to_dict() for p in target.positions()} == before
    reloaded = PlannerRepository(PlannerStore(tmp_path / "other.db"))
    assert len(reloaded.positions()) == 2


def test_invalid_json_rejected(repo: PlannerRepository) -> None:
    repo.add_account(Account(id="acc-1"))
    with pytest.raises(ImportDataError, match="not valid JSON"):
        import_data(repo, "{not json")
    assert [a.id for a in repo.accounts()] == ["acc-1"]


def test_schema_violation_rejected(repo: PlannerRepository) -> None:
    bad = {"accounts": [], "setups": [{"id": "s", "name": "x", "stepCount": 1, "weights": [0]}], "positions": []}
    with pytest.raises(ImportDataError, match="failed validation"):
        import_data(repo, json.dumps(bad))


def test_missing_section_rejected(repo: PlannerRepository) -> None:
    with pytest.raises(ImportDataError):
        import_data(repo, json.dumps({"accounts": [], "setups": []}))


def test_missing_schema_file(repo: PlannerRepository, tmp_path) -> None:
    with pytest.raises(ImportDataError, match="Schema file not found"):
        import_data(repo, json.dumps({"accounts": [], "setups": [], "positions": []}), tmp_path / "none.json")
