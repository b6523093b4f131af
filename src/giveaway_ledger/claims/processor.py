"""Claim processor - FCFS claims and burn-gated win confirmation."""

from __future__ import annotations

import logging
from datetime import datetime

from giveaway_ledger.clock import as_utc
from giveaway_ledger.distribution.winners import WinnerLedger
from giveaway_ledger.errors import (
    AlreadyClaimed,
    BurnVerificationFailed,
    GiveawayNotActive,
    GiveawayNotFound,
    GiveawayValidationError,
    NoSlotsRemaining,
    WinNotFound,
    WrongGiveawayType,
)
from giveaway_ledger.galachain.tokens import is_chain_address
from giveaway_ledger.interfaces.ledger import LedgerClient
from giveaway_ledger.interfaces.store import GiveawayStore
from giveaway_ledger.models.giveaway import BurnProof, Giveaway, GiveawayType, Win
from giveaway_ledger.models.quantity import format_quantity
from giveaway_ledger.models.records import MintItem

log = logging.getLogger(__name__)


class ClaimProcessor:
    """Takes FCFS slots and pays claimed Wins straight away.

    A failed payout does not undo the claim: the Win keeps its slot and the
    error, and settlement retries it once the giveaway has ended.
    """

    def __init__(
        self,
        store: GiveawayStore,
        ledger: LedgerClient,
        winners: WinnerLedger | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._winners = winners or WinnerLedger(store)

    async def claim(
        self,
        giveaway_id: str,
        address: str,
        now: datetime,
        burn_proof: BurnProof | None = None,
    ) -> Win:
        if not is_chain_address(address):
            raise GiveawayValidationError(
                f"{address} is not a ledger address (expected eth| or client| prefix)"
            )
        now = as_utc(now)

        giveaway = await self._store.get_giveaway(giveaway_id)
        if giveaway is None:
            raise GiveawayNotFound(f"Giveaway {giveaway_id} not found")
        if giveaway.giveaway_type != GiveawayType.FCFS:
            raise WrongGiveawayType("Giveaway is not first come first serve")
        if giveaway.is_terminal or not giveaway.is_active(now):
            raise GiveawayNotActive("Giveaway is not active")
        if any(w.address == address for w in await self._winners.wins(giveaway.id)):
            raise AlreadyClaimed(f"{address} has already claimed this giveaway")
        if giveaway.remaining_slots == 0:
            raise NoSlotsRemaining("No claims left for this giveaway")

        claimed = True
        burn_info = None
        if giveaway.require_burn_token_to_claim:
            if burn_proof is None:
                claimed = False
            else:
                await self._verify_burn(giveaway, address, burn_proof)
                burn_info = burn_proof.proof

        win = await self._winners.record_claim(
            giveaway, address, giveaway.win_per_user, claimed=claimed, burn_info=burn_info,
        )
        if win is None:
            raise NoSlotsRemaining("No claims left for this giveaway")

        log.info(
            "Claim by %s on giveaway %s (%d/%d)%s",
            address, giveaway.id, giveaway.claimed_count, giveaway.max_winners,
            "" if claimed else ", awaiting burn",
        )
        await self._store.log_activity(
            "claim", "Slot claimed" if claimed else "Slot claimed, awaiting burn",
            giveaway_id=giveaway.id, address=address,
            amount=format_quantity(win.amount_won),
        )

        if claimed:
            win = await self._pay(giveaway, win, now)
        return win

    async def confirm_burn(
        self, win_id: int, address: str, burn_proof: BurnProof, now: datetime,
    ) -> Win:
        """Claim a burn-gated Win by proving the burn, then pay it."""
        win = await self._store.get_win(win_id)
        if win is None or win.address != address:
            raise WinNotFound(f"No win {win_id} for {address}")
        if win.claimed:
            raise AlreadyClaimed("This win has already been claimed")

        giveaway = await self._store.get_giveaway(win.giveaway_id)
        if giveaway is None:
            raise GiveawayNotFound(f"Giveaway {win.giveaway_id} not found")

        await self._verify_burn(giveaway, address, burn_proof)
        if not await self._winners.claim_held(win_id, burn_proof.proof):
            raise AlreadyClaimed("This win has already been claimed")
        win.claimed = True
        win.burn_info = burn_proof.proof

        log.info("Burn confirmed for win %d by %s", win_id, address)
        await self._store.log_activity(
            "burn_confirmed", f"Burn {burn_proof.proof} confirmed",
            giveaway_id=giveaway.id, address=address,
        )
        return await self._pay(giveaway, win, as_utc(now))

    async def _verify_burn(
        self, giveaway: Giveaway, address: str, burn_proof: BurnProof,
    ) -> None:
        if burn_proof.token != giveaway.burn_token:
            raise BurnVerificationFailed("Burned token does not match the required token")
        if burn_proof.quantity < giveaway.burn_token_quantity:
            raise BurnVerificationFailed(
                f"Burn of {format_quantity(burn_proof.quantity)} is below the required "
                f"{format_quantity(giveaway.burn_token_quantity)}"
            )
        verified = await self._ledger.verify_burn(
            address, giveaway.burn_token, giveaway.burn_token_quantity, burn_proof.proof,
        )
        if not verified:
            raise BurnVerificationFailed("Burn could not be verified on the ledger")

    async def _pay(self, giveaway: Giveaway, win: Win, now: datetime) -> Win:
        async with self._winners.payout_lock:
            current = await self._store.get_win(win.id)
            if current is not None and current.paid:
                return current
            return await self._mint(giveaway, win, now)

    async def _mint(self, giveaway: Giveaway, win: Win, now: datetime) -> Win:
        profile = await self._store.get_profile(giveaway.creator_id)
        if profile is None:
            error = f"creator profile {giveaway.creator_id} not found"
            log.error("Payout of win %d skipped: %s", win.id, error)
            await self._winners.mark_failed(win.id, error)
            win.error = error
            return win

        result = await self._ledger.mint_batch(
            giveaway.giveaway_token,
            [MintItem(owner=win.address, quantity=win.amount_won)],
            minter=profile.giveaway_wallet_address,
            token_type=giveaway.giveaway_token_type,
        )
        if not result.success:
            error = result.error or "mint failed"
            log.error("Payout of win %d to %s failed: %s", win.id, win.address, error)
            await self._winners.mark_failed(win.id, error)
            win.error = error
            return win

        await self._winners.mark_paid([win.id], now)
        if result.tx_id:
            await self._store.update_win(win.id, claim_info=result.tx_id)
        log.info(
            "Paid %s to %s for giveaway %s",
            format_quantity(win.amount_won), win.address, giveaway.id,
        )
        return await self._store.get_win(win.id) or win
