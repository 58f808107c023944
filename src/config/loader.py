"""
Config loader: YAML file -> frozen dataclass tree.

The log level may be overridden from the environment (PLANNER_LOG_LEVEL),
which lets a ``.env`` file change verbosity without editing config.yaml.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("planner.config")


@dataclass(frozen=True)
class StorageConfig:
    path: str = "data/planner.db"
    write_retries: int = 2
    timeout_s: float = 10.0


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class DefaultsConfig:
    """Seed values for a fresh store and for new positions."""
    account_name: str = "Default Account"
    initial_balance: float = 10_000.0
    maker_fee: float = 0.0002
    taker_fee: float = 0.0005
    setup_name: str = "Standard 3-Step"
    setup_weights: tuple[float, ...] = (1.0, 1.0, 1.0)
    symbol: str = "BTCUSDT"
    risk_amount: float = 100.0
    leverage: float = 1.0


@dataclass(frozen=True)
class AppConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    log_level: str = "INFO"


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    Every section is optional; absent keys take the dataclass defaults.
    PLANNER_LOG_LEVEL, when set, wins over ``log_level`` in the file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    s_raw = raw.get("storage") or {}
    s_cfg = StorageConfig(
        path=str(s_raw.get("path", "data/planner.db")),
        write_retries=int(s_raw.get("write_retries", 2)),
        timeout_s=float(s_raw.get("timeout_s", 10.0)),
    )

    j_raw = raw.get("journal") or {}
    j_cfg = JournalConfig(
        path=str(j_raw.get("path", "data/journal.jsonl")),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    d_raw = raw.get("defaults") or {}
    d_cfg = DefaultsConfig(
        account_name=str(d_raw.get("account_name", "Default Account")),
        initial_balance=float(d_raw.get("initial_balance", 10_000)),
        maker_fee=float(d_raw.get("maker_fee", 0.0002)),
        taker_fee=float(d_raw.get("taker_fee", 0.0005)),
        setup_name=str(d_raw.get("setup_name", "Standard 3-Step")),
        setup_weights=tuple(float(w) for w in d_raw.get("setup_weights", [1, 1, 1])),
        symbol=str(d_raw.get("symbol", "BTCUSDT")),
        risk_amount=float(d_raw.get("risk_amount", 100)),
        leverage=float(d_raw.get("leverage", 1)),
    )

    log_level = os.environ.get("PLANNER_LOG_LEVEL") or raw.get("log_level", "INFO")
    logger.debug("Loaded config from %s (store=%s)", config_path, s_cfg.path)

    return AppConfig(
        storage=s_cfg,
        journal=j_cfg,
        defaults=d_cfg,
        log_level=str(log_level).upper(),
    )
