"""Escrow accounting - what a creator's live giveaways still hold back."""

from __future__ import annotations

from decimal import Decimal

from giveaway_ledger.models.config import GALA_TOKEN
from giveaway_ledger.models.giveaway import (
    Giveaway,
    GiveawayRequest,
    GiveawayTokenType,
    GiveawayType,
    TokenClassKey,
)
from giveaway_ledger.models.quantity import ZERO, add, clamp_zero, sum_quantities
from giveaway_ledger.models.records import EscrowReservation, EscrowSummary


class EscrowCalculator:
    """Pure functions over a creator's giveaways. Reads nothing, writes nothing."""

    def __init__(self, gas_token: TokenClassKey = GALA_TOKEN) -> None:
        self._gas_token = gas_token

    @property
    def gas_token(self) -> TokenClassKey:
        return self._gas_token

    def compute_reserved_amount(
        self,
        token: TokenClassKey,
        token_type: GiveawayTokenType,
        other_giveaways: list[Giveaway],
    ) -> Decimal:
        """Payout tokens of `token`/`token_type` held by non-terminal giveaways."""
        return sum_quantities(
            clamp_zero(g.reserved_tokens())
            for g in other_giveaways
            if g.giveaway_token == token and g.giveaway_token_type == token_type
        )

    def compute_reserved_gas_fee(
        self, other_giveaways: list[Giveaway], gas_token: TokenClassKey | None = None,
    ) -> Decimal:
        """Gas held by non-terminal giveaways.

        Balance-backed giveaways paying out in the gas token draw on the same
        balance, so their payout reservation counts here as well.
        """
        gas_token = gas_token or self._gas_token
        total = ZERO
        for g in other_giveaways:
            total = add(total, g.reserved_gas())
            if (
                g.giveaway_token == gas_token
                and g.giveaway_token_type == GiveawayTokenType.BALANCE
            ):
                total = add(total, clamp_zero(g.reserved_tokens()))
        return clamp_zero(total)

    def required_gas_fee(self, giveaway: Giveaway | GiveawayRequest) -> Decimal:
        return self.estimate_gas_fee(giveaway.giveaway_type, giveaway.max_winners)

    @staticmethod
    def estimate_gas_fee(giveaway_type: GiveawayType, max_winners: int) -> Decimal:
        # One unit per winner slot for both types: a claim is one mint
        return Decimal(max(0, max_winners))

    def summarize(self, creator_id: str, giveaways: list[Giveaway]) -> EscrowSummary:
        lines: dict[tuple[TokenClassKey, GiveawayTokenType], EscrowReservation] = {}
        for g in giveaways:
            if g.is_terminal:
                continue
            key = (g.giveaway_token, g.giveaway_token_type)
            line = lines.get(key)
            if line is None:
                line = lines[key] = EscrowReservation(
                    token=g.giveaway_token,
                    token_type=g.giveaway_token_type.value,
                    reserved=ZERO,
                )
            line.reserved = add(line.reserved, clamp_zero(g.reserved_tokens()))
            line.giveaways += 1

        return EscrowSummary(
            creator_id=creator_id,
            reservations=list(lines.values()),
            gas_reserved=self.compute_reserved_gas_fee(
                [g for g in giveaways if not g.is_terminal]
            ),
        )
