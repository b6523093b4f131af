"""LedgerClient protocol - balance/allowance reads, batch mint and burn checks."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from giveaway_ledger.models.giveaway import GiveawayTokenType, TokenClassKey
from giveaway_ledger.models.records import MintItem, MintResult


class LedgerClient(Protocol):
    """Talks to the token ledger on behalf of a creator's giveaway wallet."""

    async def fetch_balance(self, address: str, token: TokenClassKey) -> Decimal:
        """Spendable balance of `token` held by `address`."""
        ...

    async def fetch_allowance(self, granted_to: str, token: TokenClassKey) -> Decimal:
        """Usable mint allowance of `token` granted to `granted_to`."""
        ...

    async def mint_batch(
        self,
        token: TokenClassKey,
        items: list[MintItem],
        minter: str,
        token_type: GiveawayTokenType = GiveawayTokenType.ALLOWANCE,
    ) -> MintResult:
        """Pay every recipient from `minter` in one batch.

        Allowance-backed giveaways mint against the granted allowance,
        balance-backed ones move tokens out of the minter's balance.
        """
        ...

    async def verify_burn(
        self, address: str, token: TokenClassKey, quantity: Decimal, proof: str,
    ) -> bool:
        """Confirm `address` burned at least `quantity` of `token` in `proof`."""
        ...
