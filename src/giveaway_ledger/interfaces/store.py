"""GiveawayStore protocol - persists giveaways, signups, wins and profiles."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from giveaway_ledger.models.giveaway import Giveaway, Profile, Win, Winner
from giveaway_ledger.models.records import ActivityRecord


class GiveawayStore(Protocol):
    """Persists service state. Every write is atomic per call."""

    # ── Lifecycle ──────────────────────────────────────────

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        ...

    async def close(self) -> None:
        ...

    # ── Profiles ───────────────────────────────────────────

    async def save_profile(self, profile: Profile) -> None:
        ...

    async def get_profile(self, profile_id: str) -> Profile | None:
        ...

    async def get_profile_by_address(self, galachain_address: str) -> Profile | None:
        ...

    # ── Giveaways ──────────────────────────────────────────

    async def save_giveaway(self, giveaway: Giveaway) -> None:
        """Insert or update everything except signups and claimed_count."""
        ...

    async def get_giveaway(self, giveaway_id: str) -> Giveaway | None:
        ...

    async def get_all_giveaways(self) -> list[Giveaway]:
        ...

    async def get_giveaways_by_creator(
        self, creator_id: str, include_terminal: bool = False,
    ) -> list[Giveaway]:
        ...

    async def get_ready_for_settlement(self, now: datetime) -> list[Giveaway]:
        """Undistributed, non-terminal giveaways whose end time has passed."""
        ...

    async def cancel_giveaway(self, giveaway_id: str) -> bool:
        """Cancel only if non-terminal with no claims and no Wins. True if cancelled."""
        ...

    async def add_signup(self, giveaway_id: str, address: str) -> bool:
        """Record a signup. False if the address was already signed up."""
        ...

    # ── Wins ───────────────────────────────────────────────

    async def save_wins(
        self, giveaway: Giveaway, winners: list[Winner], claimed: bool = True,
    ) -> int:
        """Insert one Win per winner, skipping any already recorded."""
        ...

    async def claim_slot(
        self,
        giveaway: Giveaway,
        address: str,
        amount: Decimal,
        claimed: bool,
        burn_info: str | None = None,
    ) -> Win | None:
        """Take one FCFS slot and record the Win in a single transaction.

        Returns None when every slot is already taken. Raises
        GiveawayNotActive once the giveaway is terminal, and
        BurnVerificationFailed when ``burn_info`` was already spent.
        """
        ...

    async def claim_win(self, win_id: int, burn_info: str) -> bool:
        """Claim a held Win and spend its burn proof in one transaction.

        Returns False when the Win was already claimed.
        """
        ...

    async def get_win(self, win_id: int) -> Win | None:
        ...

    async def get_wins(self, giveaway_id: str) -> list[Win]:
        ...

    async def get_wins_by_address(
        self, address: str, unclaimed_only: bool = False,
    ) -> list[Win]:
        ...

    async def update_win(
        self,
        win_id: int,
        claimed: bool | None = None,
        error: str | None = None,
        claim_info: str | None = None,
        burn_info: str | None = None,
    ) -> None:
        ...

    async def mark_wins_paid(self, win_ids: list[int], paid_at: str) -> None:
        ...

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        giveaway_id: str | None = None,
        address: str | None = None,
        amount: str | None = None,
    ) -> None:
        ...

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        ...
