"""Giveaway validator - decides whether a creator can afford a new giveaway.

Checks run in a fixed order and the first failure is raised:
  0. request shape (no ledger call)
  1. creator identity and profile
  2. start/end window
  3-7. ledger figures net of the creator's existing escrow, payout then gas
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from giveaway_ledger.clock import as_utc
from giveaway_ledger.errors import (
    GiveawayValidationError,
    InsufficientAllowance,
    InsufficientBalance,
    InsufficientGasFee,
    InvalidTemporalWindow,
    ProfileNotFound,
)
from giveaway_ledger.escrow.calculator import EscrowCalculator
from giveaway_ledger.galachain.tokens import token_to_readable
from giveaway_ledger.interfaces.identity import IdentityResolver
from giveaway_ledger.interfaces.ledger import LedgerClient
from giveaway_ledger.interfaces.store import GiveawayStore
from giveaway_ledger.models.config import ServiceConfig
from giveaway_ledger.models.giveaway import (
    Giveaway,
    GiveawayRequest,
    GiveawayStatus,
    GiveawayTokenType,
    Profile,
)
from giveaway_ledger.models.quantity import ZERO, add, format_quantity, multiply, subtract

log = logging.getLogger(__name__)


class GiveawayValidator:
    """Turns a signed GiveawayRequest into a ready-to-save Giveaway."""

    def __init__(
        self,
        store: GiveawayStore,
        ledger: LedgerClient,
        identity: IdentityResolver | None,
        calculator: EscrowCalculator,
        config: ServiceConfig,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._identity = identity
        self._calculator = calculator
        self._config = config

    async def validate_and_prepare(
        self, request: GiveawayRequest, now: datetime, profile: Profile | None = None,
    ) -> Giveaway:
        """Run every check in order. `profile` skips the identity step when the
        caller has already resolved the creator."""
        now = as_utc(now)
        self.check_shape(request)
        if profile is None:
            profile = await self.resolve_creator(request)
        start, end = self.check_window(request, now)
        await self.check_funds(request, profile)

        return Giveaway(
            id=uuid.uuid4().hex,
            creator_id=profile.id,
            name=request.name.strip(),
            giveaway_type=request.giveaway_type,
            giveaway_token=request.giveaway_token,
            giveaway_token_type=request.giveaway_token_type,
            win_per_user=request.win_per_user,
            max_winners=request.max_winners,
            start_date_time=start,
            end_date_time=end,
            status=GiveawayStatus.CREATED,
            distributed=False,
            require_burn_token_to_claim=request.require_burn_token_to_claim,
            burn_token=request.burn_token,
            burn_token_quantity=request.burn_token_quantity,
        )

    # ── Step 0: shape ──────────────────────────────────────

    def check_shape(self, request: GiveawayRequest) -> None:
        if not isinstance(request.win_per_user, Decimal) or not request.win_per_user.is_finite():
            raise GiveawayValidationError("win_per_user must be a finite decimal")
        if request.win_per_user <= ZERO:
            raise GiveawayValidationError("win_per_user must be greater than zero")
        if not 1 <= request.max_winners <= self._config.iteration_cap:
            raise GiveawayValidationError(
                f"max_winners must be between 1 and {self._config.iteration_cap}"
            )

        name = (request.name or "").strip()
        if not name:
            raise GiveawayValidationError("name is required")
        if len(name) > self._config.max_name_length:
            raise GiveawayValidationError(
                f"name must be at most {self._config.max_name_length} characters"
            )
        lowered = name.lower()
        for word in self._config.blocked_words:
            if word and word.lower() in lowered:
                raise GiveawayValidationError("name contains a blocked word")

        if request.require_burn_token_to_claim:
            if request.burn_token is None:
                raise GiveawayValidationError("burn_token is required when a burn is required")
            if request.burn_token_quantity is None or request.burn_token_quantity <= ZERO:
                raise GiveawayValidationError(
                    "burn_token_quantity must be greater than zero when a burn is required"
                )

    # ── Step 1: identity ───────────────────────────────────

    async def resolve_creator(self, request: GiveawayRequest) -> Profile:
        if self._identity is None:
            raise GiveawayValidationError("no identity resolver configured")
        try:
            address = self._identity.recover_address(
                request.signing_payload(), request.signature,
            )
        except ValueError as exc:
            raise GiveawayValidationError(f"invalid signature: {exc}") from exc

        profile = await self._store.get_profile_by_address(address)
        if profile is None:
            raise ProfileNotFound(f"No profile found for {address}")
        return profile

    # ── Step 2: window ─────────────────────────────────────

    def check_window(
        self, request: GiveawayRequest, now: datetime,
    ) -> tuple[datetime, datetime]:
        end = as_utc(request.end_date_time)
        if request.start_date_time is None:
            start = now
        else:
            start = as_utc(request.start_date_time)
            if start < now:
                raise InvalidTemporalWindow("Start date cannot be in the past")

        if end <= now:
            raise InvalidTemporalWindow("End date must be in the future")

        gap = timedelta(minutes=self._config.min_window_minutes)
        if start > end - gap:
            raise InvalidTemporalWindow(
                f"Start date must be at least {self._config.min_window_minutes} "
                "minutes before end date"
            )
        return start, end

    # ── Steps 3-7: funds ───────────────────────────────────

    async def check_funds(self, request: GiveawayRequest, profile: Profile) -> None:
        others = await self._store.get_giveaways_by_creator(profile.id)
        gas_token = self._calculator.gas_token
        wallet = profile.giveaway_wallet_address

        reserved_tokens = self._calculator.compute_reserved_amount(
            request.giveaway_token, request.giveaway_token_type, others,
        )
        reserved_gas = self._calculator.compute_reserved_gas_fee(others)

        if request.giveaway_token_type == GiveawayTokenType.ALLOWANCE:
            held = await self._ledger.fetch_allowance(wallet, request.giveaway_token)
        else:
            held = await self._ledger.fetch_balance(wallet, request.giveaway_token)
        gas_held = await self._ledger.fetch_balance(wallet, gas_token)

        required_tokens = multiply(request.win_per_user, request.max_winners)
        required_gas = self._calculator.required_gas_fee(request)

        net_tokens = subtract(held, reserved_tokens)
        if net_tokens < required_tokens:
            deficit = subtract(required_tokens, net_tokens)
            log.info(
                "Creator %s short %s of %s (held %s, reserved %s)",
                profile.id, format_quantity(deficit),
                token_to_readable(request.giveaway_token),
                format_quantity(held), format_quantity(reserved_tokens),
            )
            if request.giveaway_token_type == GiveawayTokenType.ALLOWANCE:
                raise InsufficientAllowance(deficit)
            raise InsufficientBalance(deficit)

        # Paying out the gas token from balance draws on the gas line too
        if (
            request.giveaway_token == gas_token
            and request.giveaway_token_type == GiveawayTokenType.BALANCE
        ):
            required_gas = add(required_gas, required_tokens)

        net_gas = subtract(gas_held, reserved_gas)
        if net_gas < required_gas:
            deficit = subtract(required_gas, net_gas)
            log.info(
                "Creator %s short %s gas (held %s, reserved %s)",
                profile.id, format_quantity(deficit),
                format_quantity(gas_held), format_quantity(reserved_gas),
            )
            raise InsufficientGasFee(deficit, token_to_readable(gas_token))

