"""
Persist and load planner records (SQLite).

Accounts, setups and positions are stored as their plain-JSON payloads,
one row per record keyed by id. Positions are indexed by account id.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Sequence

from sizing_core.account import Account
from sizing_core.position import Position
from sizing_core.setup_plan import Setup

logger = logging.getLogger("planner.store")

_TABLES = ("accounts", "setups", "positions")


class PlannerStore:
    """SQLite-backed record storage. One file per path."""

    def __init__(self, path: str | Path, *, timeout_s: float = 10.0) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout_s
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=self._timeout)

    def _init_schema(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS setups (
                    id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS positions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
                """
            )
            c.execute(
                "CREATE INDEX IF NOT EXISTS idx_positions_account ON positions (account_id)"
            )

    # ---------- writes ----------

    def save_account(self, account: Account) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT INTO accounts (id, payload) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (account.id, json.dumps(account.to_dict())),
            )

    def save_setup(self, setup: Setup) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT INTO setups (id, payload) VALUES (?, ?) "
                "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                (setup.id, json.dumps(setup.to_dict())),
            )

    def save_position(self, position: Position) -> None:
        with self._conn() as c:
            c.execute(
                "INSERT INTO positions (id, account_id, payload) VALUES (?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET account_id = excluded.account_id, payload = excluded.payload",
                (position.id, position.account_id, json.dumps(position.to_dict())),
            )

    def delete_account(self, account_id: str) -> None:
        with self._conn() as c:
            c.execute("DELETE FROM accounts WHERE id = ?", (account_id,))

    def delete_setup(self, setup_id: str) -> None:
        with self._conn() as c:
            c.execute("DELETE FROM setups WHERE id = ?", (setup_id,))

    def delete_position(self, position_id: str) -> None:
        with self._conn() as c:
            c.execute("DELETE FROM positions WHERE id = ?", (position_id,))

    def clear_all(self) -> None:
        with self._conn() as c:
            for table in _TABLES:
                c.execute(f"DELETE FROM {table}")

    def bulk_save(
        self,
        accounts: Sequence[Account],
        setups: Sequence[Setup],
        positions: Sequence[Position],
    ) -> None:
        """Replace every record in one transaction."""
        with self._conn() as c:
            for table in _TABLES:
                c.execute(f"DELETE FROM {table}")
            c.executemany(
                "INSERT INTO accounts (id, payload) VALUES (?, ?)",
                [(a.id, json.dumps(a.to_dict())) for a in accounts],
            )
            c.executemany(
                "INSERT INTO setups (id, payload) VALUES (?, ?)",
                [(s.id, json.dumps(s.to_dict())) for s in setups],
            )
            c.executemany(
                "INSERT INTO positions (id, account_id, payload) VALUES (?, ?, ?)",
                [(p.id, p.account_id, json.dumps(p.to_dict())) for p in positions],
            )

    # ---------- reads ----------

    def _payloads(self, table: str) -> list[dict]:
        with self._conn() as c:
            rows = c.execute(f"SELECT payload FROM {table} ORDER BY rowid ASC").fetchall()
        return [json.loads(r[0]) for r in rows]

    def get_all_accounts(self) -> list[Account]:
        return [Account.from_dict(d) for d in self._payloads("accounts")]

    def get_all_setups(self) -> list[Setup]:
        return [Setup.from_dict(d) for d in self._payloads("setups")]

    def get_all_positions(self) -> list[Position]:
        return [Position.from_dict(d) for d in self._payloads("positions")]

    def count(self, table: str) -> int:
        if table not in _TABLES:
            raise ValueError(f"Unknown table: {table}")
        with self._conn() as c:
            row = c.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
        return row[0] if row else 0
