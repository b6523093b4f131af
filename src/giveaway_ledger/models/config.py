"""Configuration models for the service and daemon."""

from __future__ import annotations

from dataclasses import dataclass, field

from giveaway_ledger.models.giveaway import TokenClassKey

GALA_TOKEN = TokenClassKey(
    collection="GALA", category="Unit", type="none", additional_key="none",
)


@dataclass
class SchedulerConfig:
    """Settlement scheduler timing."""

    tick_interval: int = 60  # seconds between settlement ticks
    error_backoff: int = 30  # seconds to wait after an unexpected loop error


@dataclass
class LedgerConfig:
    """Ledger gateway connection."""

    base_url: str = "http://127.0.0.1:3000"
    contract_path: str = "api/asset/token-contract"
    timeout: int = 30  # seconds per request
    api_key: str = ""  # loaded from env var GIVEAWAY_LEDGER_API_KEY
    gas_token: TokenClassKey = GALA_TOKEN


@dataclass
class ServiceConfig:
    """Complete service configuration."""

    # Service
    log_level: str = "info"
    iteration_cap: int = 1000  # upper bound on winners per distributed draw
    min_window_minutes: int = 10  # minimum start -> end gap
    max_name_length: int = 100
    blocked_words: list[str] = field(
        default_factory=lambda: ["fuck", "shit", "bitch", "cunt", "dick"]
    )

    # Scheduler
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    # Ledger
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    # Storage
    db_path: str = "~/.giveaway_ledger/state.db"
