"""Winner ledger - the single record of who won what, from either producer.

Distributed giveaways add their winners in one batch at settlement time.
FCFS giveaways add one winner per successful claim. Both end up as Win rows,
which settlement and claims then pay out from.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from decimal import Decimal

from giveaway_ledger.clock import format_timestamp
from giveaway_ledger.interfaces.store import GiveawayStore
from giveaway_ledger.models.giveaway import Giveaway, Win, Winner


class WinnerLedger:
    def __init__(self, store: GiveawayStore) -> None:
        self._store = store
        # Held from reading unpaid Wins until their payment is recorded
        self.payout_lock = asyncio.Lock()

    async def record_batch(
        self, giveaway: Giveaway, winners: list[Winner], claimed: bool = True,
    ) -> int:
        """Insert the drawn winners. Addresses already recorded are left alone."""
        return await self._store.save_wins(giveaway, winners, claimed=claimed)

    async def record_claim(
        self,
        giveaway: Giveaway,
        address: str,
        amount: Decimal,
        claimed: bool,
        burn_info: str | None = None,
    ) -> Win | None:
        """Take a slot and record the Win together. None when no slot is left."""
        return await self._store.claim_slot(
            giveaway, address, amount, claimed=claimed, burn_info=burn_info,
        )

    async def claim_held(self, win_id: int, burn_info: str) -> bool:
        return await self._store.claim_win(win_id, burn_info)

    async def wins(self, giveaway_id: str) -> list[Win]:
        return await self._store.get_wins(giveaway_id)

    async def winners(self, giveaway_id: str) -> list[Winner]:
        return [
            Winner(address=w.address, amount=w.amount_won)
            for w in await self._store.get_wins(giveaway_id)
        ]

    async def unpaid(self, giveaway_id: str) -> list[Win]:
        """Claimed Wins with no payment recorded yet."""
        return [
            w for w in await self._store.get_wins(giveaway_id)
            if w.claimed and not w.paid
        ]

    async def mark_paid(self, win_ids: list[int], now: datetime) -> None:
        await self._store.mark_wins_paid(win_ids, format_timestamp(now))

    async def mark_failed(self, win_id: int, error: str) -> None:
        await self._store.update_win(win_id, error=error)
