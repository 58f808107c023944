"""
Planner repository: the one owner of accounts, setups and positions.

Every position edit runs one cycle under a lock:

    copy -> apply edits -> validate -> recalculate -> swap in -> persist -> notify

Persistence is fire-and-forget from the caller's point of view: a failed
write is retried ``write_retries`` times, then logged and dropped. The
in-memory state stays authoritative for the running process.

Referential rules live here and nowhere else:
    - deleting an account deletes its positions
    - deleting a setup referenced by any position only soft-deletes it
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from planner.errors import NotFound
from sizing_core.account import Account
from sizing_core.contracts import PositionStatus, Side
from sizing_core.edits import Edit, SetPnl, apply_edits
from sizing_core.errors import EditRejected, SetupValidationError
from sizing_core.position import Position
from sizing_core.setup_plan import Setup, apply_plan
from sizing_core.sizing_engine import recalculate
from sizing_core.validation import validate_position

if TYPE_CHECKING:
    from config.loader import DefaultsConfig
    from journal.writer import JournalWriter
    from storage.planner_store import PlannerStore

logger = logging.getLogger("planner.repository")

Listener = Callable[[], None]


class PlannerRepository:
    """Owns planner state, enforces referential rules, persists and notifies.

    Parameters
    ----------
    store:
        Persistence backend (``PlannerStore`` or anything with the same methods).
    journal:
        Optional lifecycle journal.
    write_retries:
        Extra attempts for a failed write before it is logged and dropped.
    """

    def __init__(
        self,
        store: PlannerStore,
        *,
        journal: JournalWriter | None = None,
        write_retries: int = 2,
    ) -> None:
        self._store = store
        self._journal = journal
        self._write_retries = max(write_retries, 0)
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._accounts: dict[str, Account] = {}
        self._setups: dict[str, Setup] = {}
        self._positions: dict[str, Position] = {}
        self.reload()

    # ------------------------------------------------------------------
    # Loading, subscription, persistence plumbing
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Replace in-memory state with the store's contents."""
        with self._lock:
            try:
                accounts = self._store.get_all_accounts()
                setups = self._store.get_all_setups()
                positions = self._store.get_all_positions()
            except sqlite3.Error:
                logger.exception("Failed to load planner data; starting empty")
                accounts, setups, positions = [], [], []
            self._accounts = {a.id: a for a in accounts}
            self._setups = {s.id: s for s in setups}
            self._positions = {p.id: p for p in positions}
        self._notify()

    def ensure_defaults(self, defaults: DefaultsConfig) -> None:
        """Seed a default setup and account into an empty store."""
        with self._lock:
            if not self._setups:
                weights = list(defaults.setup_weights) or [1.0]
                self.add_setup(Setup(name=defaults.setup_name, step_count=len(weights), weights=weights))
            if not self._accounts:
                self.add_account(
                    Account(
                        name=defaults.account_name,
                        initial_balance=defaults.initial_balance,
                        maker_fee=defaults.maker_fee,
                        taker_fee=defaults.taker_fee,
                    )
                )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Planner listener failed")

    def _persist(self, action: str, fn: Callable[..., Any], *args: Any) -> bool:
        attempts = self._write_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                fn(*args)
                return True
            except sqlite3.Error as exc:
                logger.warning("%s failed (attempt %d/%d): %s", action, attempt, attempts, exc)
        logger.error("%s dropped after %d attempts", action, attempts)
        return False

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    def get_account(self, account_id: str) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError:
            raise NotFound(f"Account not found: {account_id}") from None

    def add_account(self, account: Account) -> Account:
        with self._lock:
            self._accounts[account.id] = account
            self._persist("save account", self._store.save_account, account)
        self._notify()
        return account

    def update_account(self, account: Account) -> Account:
        """Replace an account; its open positions are resized for the new balance and fees."""
        with self._lock:
            self.get_account(account.id)
            self._accounts[account.id] = account
            self._persist("save account", self._store.save_account, account)
            for position in self._positions.values():
                if position.account_id == account.id and position.status != PositionStatus.CLOSED:
                    self._recalculate(position)
                    self._persist("save position", self._store.save_position, position)
        self._notify()
        return account

    def delete_account(self, account_id: str) -> None:
        """Delete an account and every position that belongs to it."""
        with self._lock:
            self.get_account(account_id)
            owned = [p.id for p in self._positions.values() if p.account_id == account_id]
            for position_id in owned:
                del self._positions[position_id]
                self._persist("delete position", self._store.delete_position, position_id)
            del self._accounts[account_id]
            self._persist("delete account", self._store.delete_account, account_id)
        self._notify()

    def account_stats(self, account_id: str) -> dict[str, float]:
        with self._lock:
            account = self.get_account(account_id)
            return account.realized_stats(self._positions.values())

    # ------------------------------------------------------------------
    # Setups
    # ------------------------------------------------------------------

    def setups(self, include_deleted: bool = False) -> list[Setup]:
        return [s for s in self._setups.values() if include_deleted or not s.is_deleted]

    def get_setup(self, setup_id: str) -> Setup:
        try:
            return self._setups[setup_id]
        except KeyError:
            raise NotFound(f"Setup not found: {setup_id}") from None

    def add_setup(self, setup: Setup) -> Setup:
        errors = setup.validation_errors()
        if errors:
            raise SetupValidationError(errors)
        with self._lock:
            self._setups[setup.id] = setup
            self._persist("save setup", self._store.save_setup, setup)
        self._notify()
        return setup

    def update_setup(self, setup: Setup) -> Setup:
        errors = setup.validation_errors()
        if errors:
            raise SetupValidationError(errors)
        with self._lock:
            self.get_setup(setup.id)
            self._setups[setup.id] = setup
            self._persist("save setup", self._store.save_setup, setup)
        self._notify()
        return setup

    def is_setup_referenced(self, setup_id: str) -> bool:
        return any(p.setup_id == setup_id for p in self._positions.values())

    def delete_setup(self, setup_id: str) -> str:
        """Soft-delete a referenced setup, hard-delete an unreferenced one.

        Returns ``"soft"`` or ``"hard"``.
        """
        with self._lock:
            setup = self.get_setup(setup_id)
            if self.is_setup_referenced(setup_id):
                setup.is_deleted = True
                self._persist("save setup", self._store.save_setup, setup)
                mode = "soft"
            else:
                del self._setups[setup_id]
                self._persist("delete setup", self._store.delete_setup, setup_id)
                mode = "hard"
            logger.info("Setup %s (%s) deleted: %s", setup.name, setup_id, mode)
            if self._journal:
                self._journal.setup_deleted(setup_id, setup.name, mode)
        self._notify()
        return mode

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def positions(self, account_id: str | None = None, include_closed: bool = True) -> list[Position]:
        return [
            p
            for p in self._positions.values()
            if (account_id is None or p.account_id == account_id)
            and (include_closed or p.status != PositionStatus.CLOSED)
        ]

    def get_position(self, position_id: str) -> Position:
        try:
            return self._positions[position_id]
        except KeyError:
            raise NotFound(f"Position not found: {position_id}") from None

    def _active_setup(self, setup_id: str) -> Setup:
        setup = self.get_setup(setup_id)
        if setup.is_deleted:
            raise EditRejected(f"Setup {setup.name} has been deleted")
        return setup

    def _recalculate(self, position: Position) -> None:
        setup = self._setups.get(position.setup_id)
        if setup is None:
            return
        account = self._accounts.get(position.account_id)
        if account is None:
            recalculate(position, setup)
            return
        recalculate(position, setup, account.current_balance or 0.0, account.fees)

    def create_position(
        self,
        account_id: str,
        symbol: str,
        side: Side | str = Side.LONG,
        *,
        setup_id: str | None = None,
        risk_amount: float = 100.0,
        leverage: float = 1.0,
        stop_loss_price: float = 0.0,
    ) -> Position:
        """Create a planning position on the given (or first active) setup."""
        with self._lock:
            self.get_account(account_id)
            if setup_id:
                setup: Setup | None = self._active_setup(setup_id)
            else:
                active = self.setups()
                setup = active[0] if active else None

            position = Position(
                account_id=account_id,
                symbol=symbol.strip().upper(),
                side=Side(side),
                risk_amount=risk_amount,
                leverage=leverage,
                stop_loss_price=stop_loss_price,
            )
            result = validate_position(position)
            if not result.ok:
                raise EditRejected("Invalid position", result.errors)
            if setup is not None:
                apply_plan(position, setup)
                self._recalculate(position)

            self._positions[position.id] = position
            self._persist("save position", self._store.save_position, position)
            if self._journal:
                self._journal.position_created(
                    position.id, position.symbol, position.side.value, position.setup_id, position.risk_amount,
                )
        self._notify()
        return position

    def edit_position(self, position_id: str, *edits: Edit) -> Position:
        """Apply *edits* as one unit, then resize, persist and notify.

        Raises ``EditRejected`` (with every validation error) and leaves the
        stored position untouched when any edit or check fails.
        """
        with self._lock:
            current = self.get_position(position_id)
            if current.status == PositionStatus.CLOSED and not all(isinstance(e, SetPnl) for e in edits):
                raise EditRejected(f"Position {position_id} is closed")

            updated = apply_edits(current, edits)
            result = validate_position(updated)
            if not result.ok:
                raise EditRejected("Invalid position", result.errors)

            # Edits batched with a close still resize the position they closed.
            if current.status != PositionStatus.CLOSED:
                self._recalculate(updated)
            self._positions[position_id] = updated
            self._persist("save position", self._store.save_position, updated)
            self._journal_changes(current, updated)

            if updated.status == PositionStatus.CLOSED:
                account = self._accounts.get(updated.account_id)
                if account is not None:
                    account.realized_stats(self._positions.values())
                    self._persist("save account", self._store.save_account, account)
        self._notify()
        return updated

    def change_setup(self, position_id: str, setup_id: str) -> Position:
        """Switch a position to another setup; a different step count resets its steps."""
        with self._lock:
            current = self.get_position(position_id)
            if current.status == PositionStatus.CLOSED:
                raise EditRejected(f"Position {position_id} is closed")
            setup = self._active_setup(setup_id)
            updated = apply_edits(current, [])
            apply_plan(updated, setup)
            self._recalculate(updated)
            self._positions[position_id] = updated
            self._persist("save position", self._store.save_position, updated)
        self._notify()
        return updated

    def recalculate_position(self, position_id: str) -> Position:
        with self._lock:
            position = self.get_position(position_id)
            if position.status != PositionStatus.CLOSED:
                self._recalculate(position)
                self._persist("save position", self._store.save_position, position)
        self._notify()
        return position

    def delete_position(self, position_id: str) -> None:
        with self._lock:
            self.get_position(position_id)
            del self._positions[position_id]
            self._persist("delete position", self._store.delete_position, position_id)
        self._notify()

    def _journal_changes(self, before: Position, after: Position) -> None:
        if self._journal is None:
            return
        if before.status == PositionStatus.PLANNING and after.status == PositionStatus.OPENED:
            self._journal.position_opened(after.id, after.symbol)
        for chase in (False, True):
            old_steps = {s.id: s for s in before.step_list(chase)}
            for idx, step in enumerate(after.step_list(chase)):
                old = old_steps.get(step.id)
                if step.is_filled and not (old and old.is_filled):
                    self._journal.step_filled(after.id, idx, step.price, step.size, chase=chase)
                if step.is_closed and not (old and old.is_closed):
                    self._journal.step_closed(after.id, idx, chase=chase)
        if before.status != PositionStatus.CLOSED and after.status == PositionStatus.CLOSED:
            self._journal.position_closed(after.id, after.symbol, after.pnl or 0.0, after.fee_total)

    # ------------------------------------------------------------------
    # Bulk replace (import)
    # ------------------------------------------------------------------

    def replace_all(
        self,
        accounts: list[Account],
        setups: list[Setup],
        positions: list[Position],
    ) -> None:
        """Swap in a complete data set; positions are kept as given (not resized)."""
        with self._lock:
            self._accounts = {a.id: a for a in accounts}
            self._setups = {s.id: s for s in setups}
            self._positions = {p.id: p for p in positions}
            self._persist("bulk save", self._store.bulk_save, accounts, setups, positions)
        self._notify()
