"""
CLI entry point: planner setups | accounts | new | show | stop | risk | fill | ...

Every command loads config from --config (default config.yaml), opens the
SQLite store through a PlannerRepository, runs one edit cycle and prints
the resulting position. Ids may be given as any unique prefix.
"""

import logging
import sys

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("planner")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _open(ctx: click.Context):
    """Load config and build the repository once per invocation."""
    if "repo" in ctx.obj:
        return ctx.obj["cfg"], ctx.obj["repo"]
    cfg = load_config(ctx.obj["config_path"])
    logging.getLogger().setLevel(cfg.log_level)
    from journal import JournalWriter
    from planner import PlannerRepository
    from storage import PlannerStore

    store = PlannerStore(cfg.storage.path, timeout_s=cfg.storage.timeout_s)
    journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
    repo = PlannerRepository(store, journal=journal, write_retries=cfg.storage.write_retries)
    repo.ensure_defaults(cfg.defaults)
    ctx.obj["cfg"] = cfg
    ctx.obj["repo"] = repo
    return cfg, repo


def _resolve(items, ref: str, kind: str):
    matches = [item for item in items if item.id == ref]
    if not matches:
        matches = [item for item in items if item.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise click.ClickException(f"No {kind} matches '{ref}'")
    raise click.ClickException(f"'{ref}' is ambiguous ({len(matches)} {kind}s match)")


def _fail(exc: Exception) -> None:
    click.echo(f"Rejected: {exc}")
    for err in getattr(exc, "errors", None) or []:
        if err != str(exc):
            click.echo(f"  - {err}")
    raise SystemExit(1)


def _show(repo, position) -> None:
    from cli.output import format_position
    from planner import NotFound

    try:
        setup = repo.get_setup(position.setup_id) if position.setup_id else None
    except NotFound:
        setup = None
    try:
        account = repo.get_account(position.account_id)
    except NotFound:
        account = None
    click.echo(format_position(position, setup, account))


def _edit(ctx: click.Context, position_ref: str, *edits) -> None:
    from sizing_core.errors import PlannerError

    _, repo = _open(ctx)
    position = _resolve(repo.positions(), position_ref, "position")
    try:
        updated = repo.edit_position(position.id, *edits)
    except PlannerError as exc:
        _fail(exc)
        return
    _show(repo, updated)


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """position-planner: risk-driven multi-step position sizing."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- accounts ----------


@cli.command()
@click.pass_context
def accounts(ctx: click.Context) -> None:
    """List accounts with balance and fee rates."""
    from cli.output import format_accounts

    _, repo = _open(ctx)
    click.echo(format_accounts(repo.accounts()))


@cli.command("account-add")
@click.argument("name")
@click.option("--balance", default=10_000.0, type=float, help="Initial balance.")
@click.option("--maker-fee", default=0.0002, type=float, help="Maker fee rate (0.0002 = 0.02%).")
@click.option("--taker-fee", default=0.0005, type=float, help="Taker fee rate.")
@click.pass_context
def account_add(ctx: click.Context, name: str, balance: float, maker_fee: float, taker_fee: float) -> None:
    """Create an account."""
    from sizing_core.account import Account

    _, repo = _open(ctx)
    account = repo.add_account(Account(name=name, initial_balance=balance, maker_fee=maker_fee, taker_fee=taker_fee))
    click.echo(f"Account created: {account.id}  {account.name}")


@cli.command("account-edit")
@click.argument("account_ref")
@click.option("--name", default=None, help="New account name.")
@click.option("--balance", default=None, type=float, help="New initial balance.")
@click.option("--maker-fee", default=None, type=float, help="New maker fee rate.")
@click.option("--taker-fee", default=None, type=float, help="New taker fee rate.")
@click.pass_context
def account_edit(
    ctx: click.Context,
    account_ref: str,
    name: str | None,
    balance: float | None,
    maker_fee: float | None,
    taker_fee: float | None,
) -> None:
    """Change an account; its open positions are resized for the new balance and fees."""
    from sizing_core.account import Account

    _, repo = _open(ctx)
    current = _resolve(repo.accounts(), account_ref, "account")
    account = Account(
        id=current.id,
        name=name if name is not None else current.name,
        initial_balance=balance if balance is not None else current.initial_balance,
        maker_fee=maker_fee if maker_fee is not None else current.maker_fee,
        taker_fee=taker_fee if taker_fee is not None else current.taker_fee,
    )
    # current balance follows the new initial balance plus realized pnl
    account.realized_stats(repo.positions(account.id))
    repo.update_account(account)
    click.echo(f"Account updated: {account.id}  {account.name}")


@cli.command("account-delete")
@click.argument("account_ref")
@click.pass_context
def account_delete(ctx: click.Context, account_ref: str) -> None:
    """Delete an account together with all of its positions."""
    _, repo = _open(ctx)
    account = _resolve(repo.accounts(), account_ref, "account")
    owned = len(repo.positions(account.id))
    repo.delete_account(account.id)
    click.echo(f"Account {account.name} deleted with {owned} positions.")


# ---------- setups ----------


@cli.command()
@click.option("--all", "include_deleted", is_flag=True, default=False, help="Include soft-deleted setups.")
@click.pass_context
def setups(ctx: click.Context, include_deleted: bool) -> None:
    """List resizing plans."""
    from cli.output import format_setups

    _, repo = _open(ctx)
    click.echo(format_setups(repo.setups(include_deleted=include_deleted)))


@cli.command("setup-add")
@click.argument("name")
@click.option("--weights", required=True, help="Comma-separated step weights, e.g. 1,1,2.")
@click.pass_context
def setup_add(ctx: click.Context, name: str, weights: str) -> None:
    """Create a resizing plan; the step count is the number of weights."""
    from sizing_core.errors import SetupValidationError
    from sizing_core.setup_plan import Setup

    try:
        parsed = [float(w) for w in weights.split(",") if w.strip()]
    except ValueError:
        raise click.BadParameter(f"not a list of numbers: {weights}", param_hint="--weights")
    _, repo = _open(ctx)
    try:
        setup = repo.add_setup(Setup(name=name, step_count=len(parsed), weights=parsed))
    except SetupValidationError as exc:
        _fail(exc)
        return
    click.echo(f"Setup created: {setup.id}  {setup.name}")


@cli.command("setup-edit")
@click.argument("setup_ref")
@click.option("--name", default=None, help="New setup name.")
@click.option("--weights", default=None, help="Comma-separated step weights; also sets the step count.")
@click.pass_context
def setup_edit(ctx: click.Context, setup_ref: str, name: str | None, weights: str | None) -> None:
    """Rename a setup or replace its weights."""
    from sizing_core.errors import SetupValidationError
    from sizing_core.setup_plan import Setup

    _, repo = _open(ctx)
    current = _resolve(repo.setups(), setup_ref, "setup")
    parsed = current.weights
    if weights is not None:
        try:
            parsed = [float(w) for w in weights.split(",") if w.strip()]
        except ValueError:
            raise click.BadParameter(f"not a list of numbers: {weights}", param_hint="--weights")
    setup = Setup(
        id=current.id,
        name=name if name is not None else current.name,
        step_count=len(parsed),
        weights=list(parsed),
        is_deleted=current.is_deleted,
    )
    try:
        repo.update_setup(setup)
    except SetupValidationError as exc:
        _fail(exc)
        return
    click.echo(f"Setup updated: {setup.id}  {setup.name}")


@cli.command("setup-delete")
@click.argument("setup_ref")
@click.pass_context
def setup_delete(ctx: click.Context, setup_ref: str) -> None:
    """Delete a setup (soft-delete when positions still reference it)."""
    _, repo = _open(ctx)
    setup = _resolve(repo.setups(), setup_ref, "setup")
    mode = repo.delete_setup(setup.id)
    click.echo(f"Setup {setup.name} deleted ({mode}).")


# ---------- positions ----------


@cli.command()
@click.option("--account", "account_ref", default=None, help="Only positions of this account.")
@click.option("--open-only", is_flag=True, default=False, help="Hide closed positions.")
@click.pass_context
def positions(ctx: click.Context, account_ref: str | None, open_only: bool) -> None:
    """List positions."""
    from cli.output import format_positions

    _, repo = _open(ctx)
    account_id = _resolve(repo.accounts(), account_ref, "account").id if account_ref else None
    click.echo(format_positions(repo.positions(account_id, include_closed=not open_only)))


@cli.command()
@click.argument("symbol", required=False)
@click.option("--side", type=click.Choice(["long", "short"]), default="long")
@click.option("--account", "account_ref", default=None, help="Account id (default: first account).")
@click.option("--setup", "setup_ref", default=None, help="Setup id (default: first active setup).")
@click.option("--risk", type=float, default=None, help="Risk amount.")
@click.option("--leverage", type=float, default=None)
@click.option("--stop", type=float, default=0.0, help="Stop-loss price.")
@click.pass_context
def new(
    ctx: click.Context,
    symbol: str | None,
    side: str,
    account_ref: str | None,
    setup_ref: str | None,
    risk: float | None,
    leverage: float | None,
    stop: float,
) -> None:
    """Create a planning position."""
    from sizing_core.errors import PlannerError

    cfg, repo = _open(ctx)
    all_accounts = repo.accounts()
    if not all_accounts:
        raise click.ClickException("Please create an account first.")
    account = _resolve(all_accounts, account_ref, "account") if account_ref else all_accounts[0]
    setup_id = _resolve(repo.setups(), setup_ref, "setup").id if setup_ref else None
    try:
        position = repo.create_position(
            account.id,
            symbol or cfg.defaults.symbol,
            side,
            setup_id=setup_id,
            risk_amount=risk if risk is not None else cfg.defaults.risk_amount,
            leverage=leverage if leverage is not None else cfg.defaults.leverage,
            stop_loss_price=stop,
        )
    except PlannerError as exc:
        _fail(exc)
        return
    _show(repo, position)


@cli.command()
@click.argument("position_ref")
@click.pass_context
def show(ctx: click.Context, position_ref: str) -> None:
    """Show one position with its step table."""
    _, repo = _open(ctx)
    _show(repo, _resolve(repo.positions(), position_ref, "position"))


@cli.command()
@click.argument("position_ref")
@click.argument("price", type=float)
@click.pass_context
def stop(ctx: click.Context, position_ref: str, price: float) -> None:
    """Set the stop-loss price and resize."""
    from sizing_core.edits import SetStopLoss

    _edit(ctx, position_ref, SetStopLoss(price))


@cli.command()
@click.argument("position_ref")
@click.argument("amount", type=float)
@click.pass_context
def risk(ctx: click.Context, position_ref: str, amount: float) -> None:
    """Set the risk amount and resize."""
    from sizing_core.edits import SetRiskAmount

    _edit(ctx, position_ref, SetRiskAmount(amount))


@cli.command()
@click.argument("position_ref")
@click.argument("value", type=float)
@click.pass_context
def leverage(ctx: click.Context, position_ref: str, value: float) -> None:
    """Set leverage and resize."""
    from sizing_core.edits import SetLeverage

    _edit(ctx, position_ref, SetLeverage(value))


@cli.command()
@click.argument("position_ref")
@click.argument("index", type=int)
@click.argument("value", type=float)
@click.pass_context
def price(ctx: click.Context, position_ref: str, index: int, value: float) -> None:
    """Set the price of planned step INDEX and resize."""
    from sizing_core.edits import SetStepPrice

    _edit(ctx, position_ref, SetStepPrice(index, value))


@cli.command("order-type")
@click.argument("position_ref")
@click.argument("index", type=int)
@click.argument("order_type", type=click.Choice(["maker", "taker"]))
@click.option("--chase", is_flag=True, default=False, help="Address a chase step.")
@click.pass_context
def order_type(ctx: click.Context, position_ref: str, index: int, order_type: str, chase: bool) -> None:
    """Set maker/taker on a step."""
    from sizing_core.edits import SetStepOrderType

    _edit(ctx, position_ref, SetStepOrderType(index, order_type, chase))


@cli.command()
@click.argument("position_ref")
@click.argument("index", type=int)
@click.option("--chase", is_flag=True, default=False, help="Address a chase step.")
@click.pass_context
def fill(ctx: click.Context, position_ref: str, index: int, chase: bool) -> None:
    """Mark a step filled (opens a planning position)."""
    from sizing_core.edits import SetFilled

    _edit(ctx, position_ref, SetFilled(index, True, chase))


@cli.command()
@click.argument("position_ref")
@click.argument("index", type=int)
@click.option("--chase", is_flag=True, default=False, help="Address a chase step.")
@click.pass_context
def unfill(ctx: click.Context, position_ref: str, index: int, chase: bool) -> None:
    """Mark a step unfilled (also un-closes it)."""
    from sizing_core.edits import SetFilled

    _edit(ctx, position_ref, SetFilled(index, False, chase))


@cli.command("close-step")
@click.argument("position_ref")
@click.argument("index", type=int)
@click.option("--chase", is_flag=True, default=False, help="Address a chase step.")
@click.pass_context
def close_step(ctx: click.Context, position_ref: str, index: int, chase: bool) -> None:
    """Close a filled step; it is frozen from then on."""
    from sizing_core.edits import CloseStep

    _edit(ctx, position_ref, CloseStep(index, chase))


@cli.command("chase-add")
@click.argument("position_ref")
@click.argument("price", type=float)
@click.argument("size", type=float)
@click.option("--maker", is_flag=True, default=False, help="Maker order (default taker).")
@click.pass_context
def chase_add(ctx: click.Context, position_ref: str, price: float, size: float, maker: bool) -> None:
    """Add a manually sized chase step."""
    from sizing_core.edits import AddChaseStep

    _edit(ctx, position_ref, AddChaseStep(price, size, "maker" if maker else "taker"))


@cli.command("chase-set")
@click.argument("position_ref")
@click.argument("index", type=int)
@click.option("--price", "new_price", type=float, default=None)
@click.option("--size", "new_size", type=float, default=None)
@click.pass_context
def chase_set(ctx: click.Context, position_ref: str, index: int, new_price: float | None, new_size: float | None) -> None:
    """Change price and/or size of a chase step."""
    from sizing_core.edits import SetChaseEntry

    _edit(ctx, position_ref, SetChaseEntry(index, new_price, new_size))


@cli.command("chase-remove")
@click.argument("position_ref")
@click.argument("index", type=int)
@click.pass_context
def chase_remove(ctx: click.Context, position_ref: str, index: int) -> None:
    """Remove a chase step."""
    from sizing_core.edits import RemoveChaseStep

    _edit(ctx, position_ref, RemoveChaseStep(index))


@cli.command("use-setup")
@click.argument("position_ref")
@click.argument("setup_ref")
@click.pass_context
def use_setup(ctx: click.Context, position_ref: str, setup_ref: str) -> None:
    """Switch a position to another setup. A different step count resets the steps."""
    from sizing_core.errors import PlannerError

    _, repo = _open(ctx)
    position = _resolve(repo.positions(), position_ref, "position")
    setup = _resolve(repo.setups(), setup_ref, "setup")
    try:
        updated = repo.change_setup(position.id, setup.id)
    except PlannerError as exc:
        _fail(exc)
        return
    _show(repo, updated)


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("position_ref")
@click.argument("value", required=False)
@click.pass_context
def pnl(ctx: click.Context, position_ref: str, value: str | None) -> None:
    """Record realized PnL (omit VALUE to clear it)."""
    from sizing_core.edits import SetPnl

    if value is None or value.strip() in ("", "-", ".", "-."):
        parsed = None
    else:
        try:
            parsed = float(value)
        except ValueError:
            raise click.BadParameter(f"not a number: {value}", param_hint="VALUE")
    _edit(ctx, position_ref, SetPnl(parsed))


@cli.command()
@click.argument("position_ref")
@click.pass_context
def close(ctx: click.Context, position_ref: str) -> None:
    """Close an opened position (realized PnL must be set)."""
    from sizing_core.edits import ClosePosition

    _edit(ctx, position_ref, ClosePosition())


@cli.command()
@click.argument("position_ref")
@click.pass_context
def delete(ctx: click.Context, position_ref: str) -> None:
    """Delete a position."""
    _, repo = _open(ctx)
    position = _resolve(repo.positions(), position_ref, "position")
    repo.delete_position(position.id)
    click.echo(f"Position {position.id} deleted.")


# ---------- import / export ----------


@cli.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_context
def export(ctx: click.Context, path: str) -> None:
    """Write every account, setup and position to a JSON file."""
    from planner import export_data

    _, repo = _open(ctx)
    with open(path, "w") as f:
        f.write(export_data(repo))
    click.echo(f"Exported to {path}")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def import_cmd(ctx: click.Context, path: str) -> None:
    """Replace all data with the contents of a JSON export."""
    from planner import ImportDataError, import_data

    _, repo = _open(ctx)
    with open(path) as f:
        text = f.read()
    try:
        counts = import_data(repo, text)
    except ImportDataError as exc:
        _fail(exc)
        return
    click.echo(
        f"Imported {counts['accounts']} accounts, {counts['setups']} setups, {counts['positions']} positions."
    )


# ---------- planner health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check config, store access and record counts.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (store={cfg.storage.path})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from storage import PlannerStore
        store = PlannerStore(cfg.storage.path, timeout_s=cfg.storage.timeout_s)
        counts = {t: store.count(t) for t in ("accounts", "setups", "positions")}
        checks.append(("store", True, ", ".join(f"{n} {t}" for t, n in counts.items())))
    except Exception as e:
        checks.append(("store", False, str(e)))

    try:
        from planner.transfer import DEFAULT_SCHEMA_PATH
        ok = DEFAULT_SCHEMA_PATH.exists()
        checks.append(("schema", ok, str(DEFAULT_SCHEMA_PATH) if ok else f"missing: {DEFAULT_SCHEMA_PATH}"))
    except Exception as e:
        checks.append(("schema", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
