"""Tests for CLI commands using click CliRunner. Temp store and journal per test."""

import json
import re
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli.main import cli
from storage.planner_store import PlannerStore


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a temp config.yaml pointing the store and journal into tmp_path."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
storage:
  path: "{tmp_path / 'planner.db'}"
journal:
  path: "{tmp_path / 'journal.jsonl'}"
  echo_stdout: false
defaults:
  setup_name: Two Step
  setup_weights: [1, 1]
  initial_balance: 10000
  maker_fee: 0
  taker_fee: 0
"""
    )
    return config_path


def _run(config: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(config), *args])


def _new_position(config: Path, *args: str) -> str:
    result = _run(config, "new", *args)
    assert result.exit_code == 0, result.output
    match = re.search(r"Id\s+: (\S+)", result.output)
    assert match, result.output
    return match.group(1)


def test_cli_seeds_defaults(tmp_config: Path) -> None:
    result = _run(tmp_config, "setups")
    assert result.exit_code == 0, result.output
    assert "Two Step" in result.output
    result = _run(tmp_config, "accounts")
    assert "Default Account" in result.output


def test_cli_plan_and_size(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "BTCUSDT", "--stop", "95")
    assert _run(tmp_config, "price", pid, "0", "120").exit_code == 0
    result = _run(tmp_config, "price", pid[:8], "1", "100")
    assert result.exit_code == 0, result.output
    assert "=== Position BTCUSDT LONG [PLANNING] ===" in result.output
    assert "3.2258" in result.output
    assert "3.8710" in result.output
    assert "Predicted BE" in result.output


def test_cli_rejects_wrong_side_stop(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "--stop", "95")
    _run(tmp_config, "price", pid, "0", "120")
    result = _run(tmp_config, "stop", pid, "125")
    assert result.exit_code == 1
    assert "Stop loss must be below the lowest step price for long." in result.output


def test_cli_fill_and_close(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "--stop", "95")
    _run(tmp_config, "price", pid, "0", "120")
    result = _run(tmp_config, "fill", pid, "0")
    assert result.exit_code == 0, result.output
    assert "[OPENED]" in result.output

    result = _run(tmp_config, "close", pid)
    assert result.exit_code == 1
    assert "Set the realized PnL" in result.output

    assert _run(tmp_config, "pnl", pid, "25.5").exit_code == 0
    result = _run(tmp_config, "close", pid)
    assert result.exit_code == 0, result.output
    assert "[CLOSED]" in result.output
    assert "Realized PnL" in result.output
    assert "10,025.50" in _run(tmp_config, "accounts").output


def test_cli_chase_steps(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "--stop", "95")
    result = _run(tmp_config, "chase-add", pid, "110", "2")
    assert result.exit_code == 0, result.output
    assert "-- chase --" in result.output
    result = _run(tmp_config, "chase-set", pid, "0", "--size", "3")
    assert "330.00" in result.output
    result = _run(tmp_config, "chase-remove", pid, "0")
    assert "-- chase --" not in result.output


def test_cli_setup_add_and_soft_delete(tmp_config: Path) -> None:
    result = _run(tmp_config, "setup-add", "Ladder", "--weights", "1,2,3")
    assert result.exit_code == 0, result.output
    setup_id = result.output.split("Setup created: ")[1].split()[0]

    pid = _new_position(tmp_config, "--setup", setup_id)
    assert "Ladder" in _run(tmp_config, "show", pid).output

    result = _run(tmp_config, "setup-delete", setup_id)
    assert "(soft)" in result.output
    assert "Ladder" not in _run(tmp_config, "setups").output
    assert "Ladder" in _run(tmp_config, "setups", "--all").output


def test_cli_setup_add_invalid(tmp_config: Path) -> None:
    result = _run(tmp_config, "setup-add", "Bad", "--weights", "1,0")
    assert result.exit_code == 1
    assert "all weights must be greater than 0" in result.output


def test_cli_use_setup_resets_steps(tmp_config: Path) -> None:
    result = _run(tmp_config, "setup-add", "Three", "--weights", "1,1,1")
    setup_id = result.output.split("Setup created: ")[1].split()[0]
    pid = _new_position(tmp_config, "--stop", "95")
    _run(tmp_config, "price", pid, "0", "120")
    result = _run(tmp_config, "use-setup", pid, setup_id)
    assert result.exit_code == 0, result.output
    assert "Setup        : Three" in result.output


def test_cli_unknown_position(tmp_config: Path) -> None:
    result = _run(tmp_config, "show", "does-not-exist")
    assert result.exit_code != 0
    assert "No position matches" in result.output


def test_cli_export_import(tmp_config: Path, tmp_path: Path) -> None:
    _new_position(tmp_config, "ETHUSDT")
    out = tmp_path / "export.json"
    assert _run(tmp_config, "export", str(out)).exit_code == 0
    data = json.loads(out.read_text())
    assert len(data["positions"]) == 1

    _run(tmp_config, "delete", data["positions"][0]["id"])
    assert "No positions." in _run(tmp_config, "positions").output

    result = _run(tmp_config, "import", str(out))
    assert result.exit_code == 0, result.output
    assert "1 positions" in result.output
    assert "ETHUSDT" in _run(tmp_config, "positions").output


def test_cli_import_invalid(tmp_config: Path, tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text('{"accounts": []}')
    result = _run(tmp_config, "import", str(bad))
    assert result.exit_code == 1
    assert "failed validation" in result.output


def test_cli_health(tmp_config: Path, tmp_path: Path) -> None:
    PlannerStore(tmp_path / "planner.db")
    result = _run(tmp_config, "health")
    assert result.exit_code == 0, result.output
    assert "[OK] config" in result.output
    assert "[OK] store" in result.output
    assert "Health: HEALTHY" in result.output


def test_cli_health_missing_config(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["--config", str(tmp_path / "missing.yaml"), "health"])
    assert result.exit_code == 1
    assert "[FAIL] config" in result.output


def test_cli_negative_pnl(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "--stop", "95")
    _run(tmp_config, "price", pid, "0", "120")
    _run(tmp_config, "fill", pid, "0")
    result = _run(tmp_config, "pnl", pid, "-12.5")
    assert result.exit_code == 0, result.output
    assert "Realized PnL : -12.50" in result.output


def test_cli_setup_edit(tmp_config: Path) -> None:
    result = _run(tmp_config, "setup-add", "Ladder", "--weights", "1,1")
    setup_id = result.output.split("Setup created: ")[1].split()[0]

    result = _run(tmp_config, "setup-edit", setup_id[:8], "--name", "Ladder 3", "--weights", "1,2,3")
    assert result.exit_code == 0, result.output
    assert f"Setup updated: {setup_id}" in result.output
    assert "Ladder 3  steps=3  weights=[1, 2, 3]" in _run(tmp_config, "setups").output

    result = _run(tmp_config, "setup-edit", setup_id, "--weights", "1,-1")
    assert result.exit_code == 1
    assert "all weights must be greater than 0" in result.output
    assert "weights=[1, 2, 3]" in _run(tmp_config, "setups").output


def test_cli_account_edit_resizes_open_positions(tmp_config: Path) -> None:
    pid = _new_position(tmp_config, "--stop", "95")
    _run(tmp_config, "price", pid, "0", "120")
    _run(tmp_config, "price", pid, "1", "100")
    assert "Total cost   : 774.19" in _run(tmp_config, "show", pid).output

    match = re.search(r"^(\S+)  Default Account", _run(tmp_config, "accounts").output, re.M)
    assert match
    result = _run(tmp_config, "account-edit", match.group(1)[:8], "--name", "Small", "--balance", "100")
    assert result.exit_code == 0, result.output
    assert "Account updated" in result.output
    assert "Small  balance=100.00" in _run(tmp_config, "accounts").output
    # margin cap at balance * leverage
    assert "Total cost   : 100.00" in _run(tmp_config, "show", pid).output


def test_cli_account_delete_cascades(tmp_config: Path) -> None:
    result = _run(tmp_config, "account-add", "Scratch", "--balance", "500")
    account_id = result.output.split("Account created: ")[1].split()[0]
    _new_position(tmp_config, "ETHUSDT", "--account", account_id)

    result = _run(tmp_config, "account-delete", account_id)
    assert result.exit_code == 0, result.output
    assert "Account Scratch deleted with 1 positions." in result.output
    assert "Scratch" not in _run(tmp_config, "accounts").output
    assert "No positions." in _run(tmp_config, "positions").output
