"""Pytest fixtures: setups, priced positions and a temp-file repository."""

from pathlib import Path

import pytest

from journal.writer import JournalWriter
from planner.repository import PlannerRepository
from sizing_core.contracts import Side
from sizing_core.position import Position
from sizing_core.setup_plan import Setup, apply_plan
from storage.planner_store import PlannerStore


def make_position(
    setup: Setup,
    prices: list[float],
    *,
    side: Side = Side.LONG,
    stop: float = 95.0,
    risk: float = 100.0,
    leverage: float = 1.0,
) -> Position:
    """Position shaped by *setup* with step prices filled in order."""
    position = Position(
        account_id="acc-1",
        symbol="BTCUSDT",
        side=side,
        stop_loss_price=stop,
        risk_amount=risk,
        leverage=leverage,
    )
    apply_plan(position, setup)
    for step, price in zip(position.steps, prices):
        step.price = price
    return position


@pytest.fixture
def two_step_setup() -> Setup:
    return Setup(id="setup-2", name="Two Step", step_count=2, weights=[1.0, 1.0])


@pytest.fixture
def one_step_setup() -> Setup:
    return Setup(id="setup-1", name="Single", step_count=1, weights=[1.0])


@pytest.fixture
def store(tmp_path: Path) -> PlannerStore:
    return PlannerStore(tmp_path / "planner.db")


@pytest.fixture
def journal(tmp_path: Path) -> JournalWriter:
    return JournalWriter(tmp_path / "journal.jsonl")


@pytest.fixture
def repo(store: PlannerStore, journal: JournalWriter) -> PlannerRepository:
    return PlannerRepository(store, journal=journal)
