"""Domain models: giveaways, wins, profiles and token keys."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from giveaway_ledger.models.quantity import ZERO, clamp_zero, multiply


class GiveawayType(str, Enum):
    """How the pool is handed out."""

    DISTRIBUTED = "DistributedGiveaway"  # pool split among signups at end time
    FCFS = "FirstComeFirstServe"  # fixed amount per claim, first N win


class GiveawayTokenType(str, Enum):
    """Which ledger figure backs the payout token."""

    BALANCE = "Balance"
    ALLOWANCE = "Allowance"


class GiveawayStatus(str, Enum):
    CREATED = "created"
    PENDING = "pending"  # winners materialized, payout outstanding
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERRORED = "errored"  # retried on the next settlement tick


TERMINAL_STATUSES = frozenset({GiveawayStatus.COMPLETED, GiveawayStatus.CANCELLED})


@dataclass(frozen=True)
class TokenClassKey:
    """Identifies a fungible token class on the ledger."""

    collection: str
    category: str
    type: str
    additional_key: str

    def to_dict(self) -> dict[str, str]:
        return {
            "collection": self.collection,
            "category": self.category,
            "type": self.type,
            "additionalKey": self.additional_key,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TokenClassKey:
        return cls(
            collection=str(data["collection"]),
            category=str(data["category"]),
            type=str(data["type"]),
            additional_key=str(data.get("additionalKey", data.get("additional_key"))),
        )


@dataclass
class Winner:
    """One address and the total it won."""

    address: str
    amount: Decimal


@dataclass
class Profile:
    """Creator profile as read from the profile-management collaborator."""

    id: str
    galachain_address: str
    giveaway_wallet_address: str


@dataclass
class BurnProof:
    """Evidence that a claimant burned the required token."""

    token: TokenClassKey
    quantity: Decimal
    proof: str  # burn tx id / ledger reference


@dataclass
class Giveaway:
    """A creator's pledge to distribute tokens."""

    id: str
    creator_id: str
    name: str
    giveaway_type: GiveawayType
    giveaway_token: TokenClassKey
    giveaway_token_type: GiveawayTokenType
    win_per_user: Decimal
    max_winners: int
    start_date_time: datetime
    end_date_time: datetime
    users_signed_up: list[str] = field(default_factory=list)
    claimed_count: int = 0
    status: GiveawayStatus = GiveawayStatus.CREATED
    distributed: bool = False
    require_burn_token_to_claim: bool = False
    burn_token: TokenClassKey | None = None
    burn_token_quantity: Decimal | None = None
    errors: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def token_pool(self) -> Decimal:
        return multiply(self.win_per_user, self.max_winners)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def remaining_slots(self) -> int:
        return max(0, self.max_winners - self.claimed_count)

    def reserved_tokens(self) -> Decimal:
        """Payout tokens this giveaway still holds against its creator."""
        if self.is_terminal:
            return ZERO
        if self.giveaway_type == GiveawayType.FCFS:
            return clamp_zero(multiply(self.win_per_user, self.remaining_slots))
        return clamp_zero(self.token_pool)

    def reserved_gas(self) -> Decimal:
        """Gas units still held: one per winner slot not yet paid out."""
        if self.is_terminal:
            return ZERO
        if self.giveaway_type == GiveawayType.FCFS:
            return Decimal(self.remaining_slots)
        return Decimal(max(0, self.max_winners))

    def is_active(self, now: datetime) -> bool:
        return self.start_date_time <= now < self.end_date_time


@dataclass
class Win:
    """One address's entitlement from one giveaway. Never deleted."""

    giveaway_id: str
    address: str
    amount_won: Decimal
    giveaway_type: GiveawayType
    claimed: bool = False
    payment_sent: str | None = None  # ISO 8601 once minted
    burn_info: str | None = None
    claim_info: str | None = None
    error: str | None = None
    id: int | None = None
    created_at: str = ""

    @property
    def paid(self) -> bool:
        return self.payment_sent is not None


@dataclass
class GiveawayRequest:
    """Signed creation payload, as handed over by the controller layer."""

    name: str
    giveaway_type: GiveawayType
    giveaway_token: TokenClassKey
    giveaway_token_type: GiveawayTokenType
    win_per_user: Decimal
    max_winners: int
    end_date_time: datetime
    signature: str
    start_date_time: datetime | None = None
    require_burn_token_to_claim: bool = False
    burn_token: TokenClassKey | None = None
    burn_token_quantity: Decimal | None = None

    def signing_payload(self) -> dict:
        """The fields covered by the creator's signature."""
        payload = {
            "name": self.name,
            "giveawayType": self.giveaway_type.value,
            "giveawayToken": self.giveaway_token.to_dict(),
            "giveawayTokenType": self.giveaway_token_type.value,
            "winPerUser": str(self.win_per_user),
            "maxWinners": self.max_winners,
            "endDateTime": self.end_date_time.isoformat(),
            "requireBurnTokenToClaim": self.require_burn_token_to_claim,
        }
        if self.start_date_time is not None:
            payload["startDateTime"] = self.start_date_time.isoformat()
        if self.burn_token is not None:
            payload["burnToken"] = self.burn_token.to_dict()
        if self.burn_token_quantity is not None:
            payload["burnTokenQuantity"] = str(self.burn_token_quantity)
        return payload
