"""Data models for the giveaway_ledger service."""

from giveaway_ledger.models.giveaway import (
    BurnProof,
    Giveaway,
    GiveawayRequest,
    GiveawayStatus,
    GiveawayTokenType,
    GiveawayType,
    Profile,
    TokenClassKey,
    Win,
    Winner,
    TERMINAL_STATUSES,
)
from giveaway_ledger.models.records import (
    ActivityRecord,
    EscrowReservation,
    EscrowSummary,
    GiveawayView,
    MintItem,
    MintResult,
    SettlementReport,
    SignupAck,
)
from giveaway_ledger.models.config import (
    GALA_TOKEN,
    LedgerConfig,
    SchedulerConfig,
    ServiceConfig,
)

__all__ = [
    "BurnProof", "Giveaway", "GiveawayRequest", "GiveawayStatus",
    "GiveawayTokenType", "GiveawayType", "Profile", "TokenClassKey",
    "Win", "Winner", "TERMINAL_STATUSES",
    "ActivityRecord", "EscrowReservation", "EscrowSummary", "GiveawayView",
    "MintItem", "MintResult", "SettlementReport", "SignupAck",
    "GALA_TOKEN", "LedgerConfig", "SchedulerConfig", "ServiceConfig",
]
