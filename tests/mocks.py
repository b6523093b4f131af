"""Mock implementations of all external-facing components."""

from __future__ import annotations

import asyncio
from decimal import Decimal

from giveaway_ledger.errors import LedgerError
from giveaway_ledger.models.config import GALA_TOKEN
from giveaway_ledger.models.giveaway import GiveawayTokenType, TokenClassKey
from giveaway_ledger.models.quantity import ZERO, add, subtract
from giveaway_ledger.models.records import MintItem, MintResult


class MockLedger:
    """Implements LedgerClient protocol. Keeps balances in memory.

    Successful payouts really move quantities: recipients are credited, the
    minter's allowance (or balance) is debited, and one gas unit per
    recipient is charged to the minter's gas balance.
    """

    def __init__(self, gas_token: TokenClassKey = GALA_TOKEN) -> None:
        self.gas_token = gas_token
        self.balances: dict[tuple[str, TokenClassKey], Decimal] = {}
        self.allowances: dict[tuple[str, TokenClassKey], Decimal] = {}
        self.burns: dict[tuple[str, str], tuple[TokenClassKey, Decimal]] = {}

        self.mint_calls: list[tuple[TokenClassKey, list[MintItem], str, GiveawayTokenType]] = []
        self.read_calls: list[tuple[str, str, TokenClassKey]] = []
        self.burn_checks: list[tuple[str, str]] = []

        self.fail_mints = 0  # number of upcoming mint calls to fail
        self.mint_error = "mock mint failure"
        self.fail_reads = False
        self.mint_delay = 0.0

    # ── Test helpers ───────────────────────────────────────

    def set_balance(self, address: str, token: TokenClassKey, quantity) -> None:
        self.balances[(address, token)] = Decimal(quantity)

    def set_allowance(self, address: str, token: TokenClassKey, quantity) -> None:
        self.allowances[(address, token)] = Decimal(quantity)

    def balance_of(self, address: str, token: TokenClassKey = GALA_TOKEN) -> Decimal:
        return self.balances.get((address, token), ZERO)

    def add_burn(self, address: str, proof: str, token: TokenClassKey, quantity) -> None:
        self.burns[(address, proof)] = (token, Decimal(quantity))

    @property
    def minted_items(self) -> list[MintItem]:
        return [item for _, items, _, _ in self.mint_calls for item in items]

    # ── LedgerClient ───────────────────────────────────────

    async def fetch_balance(self, address: str, token: TokenClassKey) -> Decimal:
        self.read_calls.append(("balance", address, token))
        if self.fail_reads:
            raise LedgerError("FetchBalances: mock gateway down")
        return self.balances.get((address, token), ZERO)

    async def fetch_allowance(self, granted_to: str, token: TokenClassKey) -> Decimal:
        self.read_calls.append(("allowance", granted_to, token))
        if self.fail_reads:
            raise LedgerError("FetchAllowances: mock gateway down")
        return self.allowances.get((granted_to, token), ZERO)

    async def mint_batch(
        self,
        token: TokenClassKey,
        items: list[MintItem],
        minter: str,
        token_type: GiveawayTokenType = GiveawayTokenType.ALLOWANCE,
    ) -> MintResult:
        if self.mint_delay:
            await asyncio.sleep(self.mint_delay)
        if self.fail_mints > 0:
            self.fail_mints -= 1
            return MintResult(success=False, error=self.mint_error)

        self.mint_calls.append((token, list(items), minter, token_type))
        source = self.balances if token_type == GiveawayTokenType.BALANCE else self.allowances
        for item in items:
            source[(minter, token)] = subtract(source.get((minter, token), ZERO), item.quantity)
            self.balances[(item.owner, token)] = add(
                self.balances.get((item.owner, token), ZERO), item.quantity,
            )
            self.balances[(minter, self.gas_token)] = subtract(
                self.balances.get((minter, self.gas_token), ZERO), 1,
            )
        return MintResult(
            success=True,
            tx_id=f"tx-{len(self.mint_calls)}",
            paid_owners=[item.owner for item in items],
        )

    async def verify_burn(
        self, address: str, token: TokenClassKey, quantity: Decimal, proof: str,
    ) -> bool:
        self.burn_checks.append((address, proof))
        burn = self.burns.get((address, proof))
        if burn is None:
            return False
        burned_token, burned_qty = burn
        return burned_token == token and burned_qty >= quantity


class MockIdentity:
    """Implements IdentityResolver protocol.

    Signatures map to addresses through `signers`; an unknown signature
    recovers to itself, and "invalid" fails to recover at all.
    """

    def __init__(self, signers: dict[str, str] | None = None) -> None:
        self.signers = dict(signers or {})
        self.calls: list[tuple[dict, str]] = []

    def recover_address(self, payload: dict, signature: str) -> str:
        self.calls.append((payload, signature))
        if signature == "invalid":
            raise ValueError("signature does not recover")
        return self.signers.get(signature, signature)


class CyclicRandom:
    """Implements RandomSource protocol. Returns 0/n, 1/n, ... (n-1)/n, 0/n, ..."""

    def __init__(self, n: int) -> None:
        self.n = n
        self.index = 0

    def random(self) -> float:
        value = (self.index % self.n) / self.n
        self.index += 1
        return value


class FixedRandom:
    """Implements RandomSource protocol. Replays a fixed sequence forever."""

    def __init__(self, *values: float) -> None:
        self.values = values or (0.0,)
        self.calls = 0

    def random(self) -> float:
        value = self.values[self.calls % len(self.values)]
        self.calls += 1
        return value
