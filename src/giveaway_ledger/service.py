"""Giveaway service - the operations exposed to controllers and the CLI."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from giveaway_ledger.claims.processor import ClaimProcessor
from giveaway_ledger.clock import as_utc, format_timestamp, utc_now
from giveaway_ledger.distribution.winners import WinnerLedger
from giveaway_ledger.errors import (
    AlreadySignedUp,
    GiveawayNotActive,
    GiveawayNotFound,
    GiveawayNotStarted,
    GiveawayValidationError,
    NotCancellable,
    Rejection,
    WrongGiveawayType,
)
from giveaway_ledger.escrow.calculator import EscrowCalculator
from giveaway_ledger.escrow.validator import GiveawayValidator
from giveaway_ledger.galachain.tokens import is_chain_address, token_to_readable
from giveaway_ledger.interfaces.identity import IdentityResolver
from giveaway_ledger.interfaces.ledger import LedgerClient
from giveaway_ledger.interfaces.rng import RandomSource
from giveaway_ledger.interfaces.store import GiveawayStore
from giveaway_ledger.models.config import ServiceConfig
from giveaway_ledger.models.giveaway import (
    BurnProof,
    Giveaway,
    GiveawayRequest,
    GiveawayStatus,
    GiveawayType,
    Win,
    Winner,
)
from giveaway_ledger.models.quantity import format_quantity
from giveaway_ledger.models.records import (
    EscrowSummary,
    GiveawayView,
    SettlementReport,
    SignupAck,
)
from giveaway_ledger.settlement.scheduler import SettlementScheduler

log = logging.getLogger(__name__)


class GiveawayService:
    """Creation, signup, claims, settlement and read views over one store.

    Collaborators are injected; nothing here reaches for module-level state.
    Creation is serialized per creator so two concurrent requests cannot both
    spend the same unreserved funds.
    """

    def __init__(
        self,
        store: GiveawayStore,
        ledger: LedgerClient,
        identity: IdentityResolver | None = None,
        config: ServiceConfig | None = None,
        rng: RandomSource | None = None,
    ) -> None:
        self._config = config or ServiceConfig()
        self.store = store
        self.ledger = ledger
        self.calculator = EscrowCalculator(self._config.ledger.gas_token)
        self.validator = GiveawayValidator(
            store, ledger, identity, self.calculator, self._config,
        )
        self.winners = WinnerLedger(store)
        self.claims = ClaimProcessor(store, ledger, self.winners)
        self.scheduler = SettlementScheduler(
            store, ledger, self.winners, rng=rng,
            iteration_cap=self._config.iteration_cap,
        )
        self._creator_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # ── Creation ───────────────────────────────────────────

    async def create_giveaway(
        self, request: GiveawayRequest, now: datetime | None = None,
    ) -> Giveaway:
        try:
            self.validator.check_shape(request)
            profile = await self.validator.resolve_creator(request)
            async with self._creator_locks[profile.id]:
                giveaway = await self.validator.validate_and_prepare(
                    request, as_utc(now or utc_now()), profile=profile,
                )
                await self.store.save_giveaway(giveaway)
        except Rejection as exc:
            log.info("Giveaway creation rejected (%s): %s", exc.reason, exc.message)
            raise

        log.info(
            "Created %s giveaway %s: %s x %d of %s",
            giveaway.giveaway_type.value, giveaway.id,
            format_quantity(giveaway.win_per_user), giveaway.max_winners,
            token_to_readable(giveaway.giveaway_token),
        )
        await self.store.log_activity(
            "giveaway_created", f"Created giveaway '{giveaway.name}'",
            giveaway_id=giveaway.id, address=profile.galachain_address,
            amount=format_quantity(giveaway.token_pool),
        )
        return giveaway

    def estimate_gas_fee(self, giveaway_type: GiveawayType, max_winners: int) -> Decimal:
        return self.calculator.estimate_gas_fee(giveaway_type, max_winners)

    async def cancel_giveaway(self, giveaway_id: str, creator_id: str) -> Giveaway:
        """Cancel a giveaway nobody has won yet, releasing its escrow."""
        giveaway = await self.store.get_giveaway(giveaway_id)
        if giveaway is None or giveaway.creator_id != creator_id:
            raise GiveawayNotFound(f"Giveaway {giveaway_id} not found")
        if giveaway.is_terminal:
            raise NotCancellable(f"Giveaway is already {giveaway.status.value}")
        if not await self.store.cancel_giveaway(giveaway.id):
            raise NotCancellable("Giveaway already has winners")

        giveaway.status = GiveawayStatus.CANCELLED
        log.info("Giveaway %s cancelled by creator %s", giveaway.id, creator_id)
        await self.store.log_activity(
            "giveaway_cancelled", "Cancelled by creator", giveaway_id=giveaway.id,
        )
        return giveaway

    # ── Participation ──────────────────────────────────────

    async def signup(
        self, giveaway_id: str, address: str, now: datetime | None = None,
    ) -> SignupAck:
        if not is_chain_address(address):
            raise GiveawayValidationError(
                f"{address} is not a ledger address (expected eth| or client| prefix)"
            )
        now = as_utc(now or utc_now())

        try:
            giveaway = await self.store.get_giveaway(giveaway_id)
            if giveaway is None:
                raise GiveawayNotFound(f"Giveaway {giveaway_id} not found")
            if giveaway.giveaway_type != GiveawayType.DISTRIBUTED:
                raise WrongGiveawayType("Signups are only for distributed giveaways")
            if now < giveaway.start_date_time:
                raise GiveawayNotStarted("Giveaway has not started yet")
            if giveaway.is_terminal or now >= giveaway.end_date_time:
                raise GiveawayNotActive("Giveaway has ended")
            if not await self.store.add_signup(giveaway.id, address):
                raise AlreadySignedUp("User has already signed up for this giveaway")
        except Rejection as exc:
            log.info("Signup by %s rejected (%s): %s", address, exc.reason, exc.message)
            raise

        log.debug("Signup by %s for giveaway %s", address, giveaway.id)
        await self.store.log_activity(
            "signup", "Signed up", giveaway_id=giveaway.id, address=address,
        )
        return SignupAck(
            giveaway_id=giveaway.id, address=address, message="Successfully signed up",
        )

    async def claim_fcfs(
        self,
        giveaway_id: str,
        address: str,
        burn_proof: BurnProof | None = None,
        now: datetime | None = None,
    ) -> Win:
        try:
            return await self.claims.claim(
                giveaway_id, address, now=now or utc_now(), burn_proof=burn_proof,
            )
        except Rejection as exc:
            log.info("Claim by %s rejected (%s): %s", address, exc.reason, exc.message)
            raise

    async def confirm_burn(
        self,
        win_id: int,
        address: str,
        burn_proof: BurnProof,
        now: datetime | None = None,
    ) -> Win:
        try:
            return await self.claims.confirm_burn(
                win_id, address, burn_proof, now=now or utc_now(),
            )
        except Rejection as exc:
            log.info("Burn confirmation by %s rejected (%s): %s", address, exc.reason, exc.message)
            raise

    # ── Settlement ─────────────────────────────────────────

    async def run_settlement_tick(self, now: datetime | None = None) -> SettlementReport:
        return await self.scheduler.run_tick(now)

    # ── Read views ─────────────────────────────────────────

    async def get_escrow_summary(self, creator_id: str) -> EscrowSummary:
        giveaways = await self.store.get_giveaways_by_creator(creator_id)
        return self.calculator.summarize(creator_id, giveaways)

    async def get_claimable_wins(self, address: str) -> list[Win]:
        return await self.store.get_wins_by_address(address, unclaimed_only=True)

    async def get_user_wins(self, address: str) -> list[Win]:
        return await self.store.get_wins_by_address(address)

    async def list_giveaways(self, address: str | None = None) -> list[GiveawayView]:
        won: set[str] = set()
        if address:
            won = {w.giveaway_id for w in await self.store.get_wins_by_address(address)}
        return [
            to_view(g, is_winner=g.id in won, winners=await self.winners.winners(g.id))
            for g in await self.store.get_all_giveaways()
        ]


def to_view(
    giveaway: Giveaway, is_winner: bool = False, winners: list[Winner] | None = None,
) -> GiveawayView:
    """User-facing projection of a giveaway. Error history is left out."""
    return GiveawayView(
        id=giveaway.id,
        name=giveaway.name,
        giveaway_type=giveaway.giveaway_type.value,
        giveaway_token=giveaway.giveaway_token.to_dict(),
        giveaway_token_type=giveaway.giveaway_token_type.value,
        win_per_user=format_quantity(giveaway.win_per_user),
        max_winners=giveaway.max_winners,
        start_date_time=format_timestamp(giveaway.start_date_time),
        end_date_time=format_timestamp(giveaway.end_date_time),
        status=giveaway.status.value,
        distributed=giveaway.distributed,
        signups=len(giveaway.users_signed_up),
        is_winner=is_winner,
        claims_left=giveaway.remaining_slots
        if giveaway.giveaway_type == GiveawayType.FCFS else None,
        require_burn_token_to_claim=giveaway.require_burn_token_to_claim,
        winners=list(winners or []),
    )
