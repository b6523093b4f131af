"""Internal record types for operation results and read views."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from giveaway_ledger.models.giveaway import TokenClassKey, Winner


@dataclass
class MintItem:
    """One recipient line in a batch mint."""

    owner: str
    quantity: Decimal


@dataclass
class MintResult:
    """Result of a batch mint against the ledger."""

    success: bool
    error: str | None = None
    tx_id: str | None = None
    paid_owners: list[str] = field(default_factory=list)  # recipients already paid


@dataclass
class EscrowReservation:
    """Reserved quantities for one (token, token type) line."""

    token: TokenClassKey
    token_type: str
    reserved: Decimal
    giveaways: int = 0


@dataclass
class EscrowSummary:
    """Everything a creator currently has reserved."""

    creator_id: str
    reservations: list[EscrowReservation] = field(default_factory=list)
    gas_reserved: Decimal = Decimal(0)

    def reserved_for(self, token: TokenClassKey, token_type: str) -> Decimal:
        for r in self.reservations:
            if r.token == token and r.token_type == token_type:
                return r.reserved
        return Decimal(0)


@dataclass
class SettlementReport:
    """Outcome counts of one settlement tick."""

    started_at: str
    completed_at: str = ""
    examined: int = 0
    completed: int = 0
    cancelled: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0


@dataclass
class SignupAck:
    giveaway_id: str
    address: str
    message: str


@dataclass
class ActivityRecord:
    """A single activity log entry."""

    id: int
    event_type: str
    giveaway_id: str | None
    address: str | None
    amount: str | None
    message: str
    created_at: str


@dataclass
class GiveawayView:
    """User-facing giveaway data. Never carries the error log."""

    id: str
    name: str
    giveaway_type: str
    giveaway_token: dict
    giveaway_token_type: str
    win_per_user: str
    max_winners: int
    start_date_time: str
    end_date_time: str
    status: str
    distributed: bool
    signups: int
    is_winner: bool = False
    claims_left: int | None = None
    require_burn_token_to_claim: bool = False
    winners: list[Winner] = field(default_factory=list)
