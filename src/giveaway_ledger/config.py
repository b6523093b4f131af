"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from giveaway_ledger.models.config import ServiceConfig
from giveaway_ledger.models.giveaway import TokenClassKey


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "GIVEAWAY_LEDGER_",
) -> ServiceConfig:
    """Load service configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (GIVEAWAY_LEDGER_API_KEY, etc.)
        2. TOML config file
        3. Defaults from ServiceConfig
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = ServiceConfig()

    # ── Service section ────────────────────────────────────
    service = raw.get("service", {})
    if v := service.get("log_level"):
        cfg.log_level = str(v)
    if v := service.get("iteration_cap"):
        cfg.iteration_cap = int(v)
    if (v := service.get("min_window_minutes")) is not None:
        cfg.min_window_minutes = int(v)
    if v := service.get("max_name_length"):
        cfg.max_name_length = int(v)
    if (v := service.get("blocked_words")) is not None:
        cfg.blocked_words = [str(w) for w in v]

    # ── Scheduler section ──────────────────────────────────
    scheduler = raw.get("scheduler", {})
    if v := scheduler.get("tick_interval"):
        cfg.scheduler.tick_interval = int(v)
    if v := scheduler.get("error_backoff"):
        cfg.scheduler.error_backoff = int(v)

    # ── Ledger section ─────────────────────────────────────
    ledger = raw.get("ledger", {})
    if v := ledger.get("base_url"):
        cfg.ledger.base_url = str(v)
    if v := ledger.get("contract_path"):
        cfg.ledger.contract_path = str(v)
    if v := ledger.get("timeout"):
        cfg.ledger.timeout = int(v)
    if v := ledger.get("api_key"):
        cfg.ledger.api_key = str(v)
    if gas := ledger.get("gas_token"):
        cfg.ledger.gas_token = TokenClassKey.from_dict(gas)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if key := os.environ.get(f"{env_prefix}API_KEY"):
        cfg.ledger.api_key = key
    if url := os.environ.get(f"{env_prefix}BASE_URL"):
        cfg.ledger.base_url = url
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if tick := os.environ.get(f"{env_prefix}TICK_INTERVAL"):
        cfg.scheduler.tick_interval = int(tick)

    # Expand ~ in paths, leave sqlite's in-memory marker alone
    if cfg.db_path != ":memory:":
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
