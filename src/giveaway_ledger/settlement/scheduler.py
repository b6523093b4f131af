"""Settlement scheduler - pays out giveaways whose end time has passed."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime

from giveaway_ledger.clock import as_utc, format_timestamp, utc_now
from giveaway_ledger.distribution.selector import DEFAULT_ITERATION_CAP, select_winners
from giveaway_ledger.distribution.winners import WinnerLedger
from giveaway_ledger.errors import NoParticipantsError
from giveaway_ledger.galachain.tokens import token_to_readable
from giveaway_ledger.interfaces.ledger import LedgerClient
from giveaway_ledger.interfaces.rng import RandomSource
from giveaway_ledger.interfaces.store import GiveawayStore
from giveaway_ledger.models.giveaway import Giveaway, GiveawayStatus, GiveawayType
from giveaway_ledger.models.quantity import format_quantity
from giveaway_ledger.models.records import MintItem, SettlementReport

log = logging.getLogger(__name__)


class SettlementScheduler:
    """Settles every ended, undistributed giveaway, one at a time.

    Per giveaway:
    1. Materializes winners once (distributed draw, or the FCFS claims)
    2. Leaves burn-gated distributed wins for their winners to claim
    3. Mints every claimed, unpaid Win in one batch
    4. Records the outcome; failures stay undistributed and retry next tick
    """

    def __init__(
        self,
        store: GiveawayStore,
        ledger: LedgerClient,
        winners: WinnerLedger | None = None,
        rng: RandomSource | None = None,
        iteration_cap: int = DEFAULT_ITERATION_CAP,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._winners = winners or WinnerLedger(store)
        self._rng = rng
        self._iteration_cap = iteration_cap
        self._lock = asyncio.Lock()

    async def run_tick(self, now: datetime | None = None) -> SettlementReport:
        """Run one settlement pass. Overlapping calls queue behind the lock."""
        async with self._lock:
            return await self._run_tick(as_utc(now or utc_now()))

    async def _run_tick(self, now: datetime) -> SettlementReport:
        report = SettlementReport(started_at=format_timestamp(utc_now()))
        start = time.monotonic()

        giveaways = await self._store.get_ready_for_settlement(now)
        for giveaway in giveaways:
            report.examined += 1
            try:
                outcome = await self._settle(giveaway, now)
            except Exception as exc:
                # Only reachable if the final save itself failed
                log.error("Settlement of giveaway %s aborted: %s", giveaway.id, exc)
                outcome = "failed"

            if outcome == "completed":
                report.completed += 1
            elif outcome == "cancelled":
                report.cancelled += 1
            elif outcome == "failed":
                report.failed += 1
            else:
                report.skipped += 1

        report.duration_ms = int((time.monotonic() - start) * 1000)
        report.completed_at = format_timestamp(utc_now())
        if report.examined:
            log.info(
                "Settlement tick: %d examined, %d completed, %d cancelled, %d failed in %dms",
                report.examined, report.completed, report.cancelled,
                report.failed, report.duration_ms,
            )
        return report

    async def _settle(self, giveaway: Giveaway, now: datetime) -> str:
        try:
            wins = await self._winners.wins(giveaway.id)
            if not wins:
                if not await self._materialize(giveaway):
                    giveaway.status = GiveawayStatus.CANCELLED
                    giveaway.distributed = True
                    log.info("Giveaway %s ended with no participants, cancelled", giveaway.id)
                    await self._store.log_activity(
                        "giveaway_cancelled", "No participants", giveaway_id=giveaway.id,
                    )
                    return "cancelled"

            if (
                giveaway.giveaway_type == GiveawayType.DISTRIBUTED
                and giveaway.require_burn_token_to_claim
            ):
                giveaway.status = GiveawayStatus.COMPLETED
                giveaway.distributed = True
                log.info("Giveaway %s drawn, winners claim with a burn", giveaway.id)
                await self._store.log_activity(
                    "giveaway_drawn", "Winners await burn confirmation",
                    giveaway_id=giveaway.id,
                )
                return "completed"

            return await self._pay(giveaway, now)

        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            log.error("Settlement of giveaway %s failed: %s", giveaway.id, error)
            giveaway.errors.append(error)
            giveaway.status = GiveawayStatus.ERRORED
            await self._store.log_activity(
                "settlement_failed", error, giveaway_id=giveaway.id,
            )
            return "failed"

        finally:
            await self._store.save_giveaway(giveaway)

    async def _materialize(self, giveaway: Giveaway) -> bool:
        """Record the winner list once. False when nobody took part."""
        if giveaway.giveaway_type == GiveawayType.FCFS:
            # Claims are the winners; none were made
            return False

        try:
            winners = select_winners(
                giveaway.users_signed_up,
                giveaway.token_pool,
                iteration_cap=self._iteration_cap,
                winner_count=giveaway.max_winners,
                rng=self._rng,
            )
        except NoParticipantsError:
            return False
        if not winners:
            return False

        await self._winners.record_batch(
            giveaway, winners, claimed=not giveaway.require_burn_token_to_claim,
        )
        giveaway.status = GiveawayStatus.PENDING
        await self._store.save_giveaway(giveaway)
        log.info(
            "Giveaway %s drew %d winner(s) from %d signup(s)",
            giveaway.id, len(winners), len(giveaway.users_signed_up),
        )
        return True

    async def _pay(self, giveaway: Giveaway, now: datetime) -> str:
        async with self._winners.payout_lock:
            return await self._pay_unpaid(giveaway, now)

    async def _pay_unpaid(self, giveaway: Giveaway, now: datetime) -> str:
        unpaid = await self._winners.unpaid(giveaway.id)
        if unpaid:
            profile = await self._store.get_profile(giveaway.creator_id)
            if profile is None:
                raise LookupError(f"creator profile {giveaway.creator_id} not found")

            result = await self._ledger.mint_batch(
                giveaway.giveaway_token,
                [MintItem(owner=w.address, quantity=w.amount_won) for w in unpaid],
                minter=profile.giveaway_wallet_address,
                token_type=giveaway.giveaway_token_type,
            )

            paid_ids = [w.id for w in unpaid if result.success or w.address in result.paid_owners]
            await self._winners.mark_paid(paid_ids, now)

            if not result.success:
                error = result.error or "mint failed"
                log.error(
                    "Payout for giveaway %s failed (%d of %d paid): %s",
                    giveaway.id, len(paid_ids), len(unpaid), error,
                )
                giveaway.errors.append(error)
                giveaway.status = GiveawayStatus.ERRORED
                await self._store.log_activity(
                    "settlement_failed", error, giveaway_id=giveaway.id,
                )
                return "failed"

            log.info(
                "Paid %d winner(s) of giveaway %s in %s",
                len(unpaid), giveaway.id, token_to_readable(giveaway.giveaway_token),
            )
            for w in unpaid:
                await self._store.log_activity(
                    "payout_sent", f"Paid {format_quantity(w.amount_won)}",
                    giveaway_id=giveaway.id, address=w.address,
                    amount=format_quantity(w.amount_won),
                )

        giveaway.status = GiveawayStatus.COMPLETED
        giveaway.distributed = True
        await self._store.log_activity(
            "giveaway_completed", "Giveaway settled", giveaway_id=giveaway.id,
        )
        return "completed"
