"""GalaChain ledger client - balance/allowance reads, payouts and burn checks
via the token contract's REST gateway."""

from __future__ import annotations

import logging
import time
from decimal import Decimal

import httpx

from giveaway_ledger.errors import LedgerError
from giveaway_ledger.galachain.tokens import (
    combine_allowances,
    spendable_balance,
    tokens_equal,
)
from giveaway_ledger.models.giveaway import GiveawayTokenType, TokenClassKey
from giveaway_ledger.models.quantity import ZERO, format_quantity, to_quantity
from giveaway_ledger.models.records import MintItem, MintResult

log = logging.getLogger(__name__)

STATUS_OK = 1


class GalaChainLedgerClient:
    """Talks to a GalaChain token contract through its REST gateway.

    Every call is a JSON POST to ``{base_url}/{contract_path}/{Method}`` and
    every response has the envelope ``{"Status": 1, "Data": ...}``.

    - FetchBalances / FetchAllowances / FetchBurns: reads, raise LedgerError
    - BatchMintToken: allowance-backed payouts
    - TransferToken: balance-backed payouts, one call per recipient
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:3000",
        contract_path: str = "api/asset/token-contract",
        timeout: int = 30,
        api_key: str = "",
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._contract_path = contract_path.strip("/")
        self._timeout = timeout
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["X-API-Key"] = api_key

    def _url(self, method: str) -> str:
        return f"{self._base_url}/{self._contract_path}/{method}"

    async def _post(self, method: str, body: dict) -> dict:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10),
        ) as client:
            resp = await client.post(self._url(method), json=body, headers=self._headers)
            resp.raise_for_status()
            return resp.json()

    async def _read(self, method: str, body: dict):
        """POST a read-only method and return its Data, or raise LedgerError."""
        try:
            payload = await self._post(method, body)
        except httpx.HTTPStatusError as exc:
            raise LedgerError(f"{method}: gateway HTTP {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            raise LedgerError(f"{method}: gateway timeout") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerError(f"{method}: {exc}") from exc

        if payload.get("Status") != STATUS_OK:
            raise LedgerError(f"{method}: {payload.get('Message') or 'request failed'}")
        return payload.get("Data")

    # ── Reads ──────────────────────────────────────────────

    async def fetch_balance(self, address: str, token: TokenClassKey) -> Decimal:
        data = await self._read("FetchBalances", {"owner": address, **token.to_dict()})
        balance = spendable_balance(data or [], token)
        log.debug("Balance of %s for %s: %s", token.collection, address, balance)
        return balance

    async def fetch_allowance(self, granted_to: str, token: TokenClassKey) -> Decimal:
        data = await self._read(
            "FetchAllowances",
            {"grantedTo": granted_to, **token.to_dict(), "instance": "0"},
        )
        # Paginated gateways wrap the list in {"results": [...]}
        if isinstance(data, dict):
            data = data.get("results", [])
        for entry in combine_allowances(data or []):
            if entry.token == token:
                log.debug(
                    "Allowance of %s for %s: %s", token.collection, granted_to, entry.quantity,
                )
                return entry.quantity
        return ZERO

    async def verify_burn(
        self, address: str, token: TokenClassKey, quantity: Decimal, proof: str,
    ) -> bool:
        """Look up `address`'s burns and match `proof` against one of them.

        A proof matches a burn by its transaction id or its creation stamp.
        """
        data = await self._read("FetchBurns", {"burnedBy": address, **token.to_dict()})
        for burn in data or []:
            if not tokens_equal(burn, token):
                continue
            if proof not in (str(burn.get("transactionId", "")), str(burn.get("created", ""))):
                continue
            if to_quantity(burn.get("quantity", "0")) >= quantity:
                return True
            log.info(
                "Burn %s by %s is short: %s < %s",
                proof, address, burn.get("quantity"), format_quantity(quantity),
            )
            return False
        log.info("No burn %s found for %s", proof, address)
        return False

    # ── Payouts ────────────────────────────────────────────

    async def mint_batch(
        self,
        token: TokenClassKey,
        items: list[MintItem],
        minter: str,
        token_type: GiveawayTokenType = GiveawayTokenType.ALLOWANCE,
    ) -> MintResult:
        if not items:
            return MintResult(success=True)
        if token_type == GiveawayTokenType.BALANCE:
            return await self._transfer_each(token, items, minter)
        return await self._batch_mint(token, items, minter)

    async def _batch_mint(
        self, token: TokenClassKey, items: list[MintItem], minter: str,
    ) -> MintResult:
        start = time.monotonic()
        body = {
            "callingUser": minter,
            "mintDtos": [
                {
                    "owner": item.owner,
                    "quantity": format_quantity(item.quantity),
                    "tokenClass": token.to_dict(),
                }
                for item in items
            ],
        }
        try:
            payload = await self._post("BatchMintToken", body)
        except httpx.HTTPStatusError as exc:
            log.error("BatchMintToken failed: HTTP %d", exc.response.status_code)
            return MintResult(success=False, error=f"gateway HTTP {exc.response.status_code}")
        except httpx.TimeoutException:
            log.error("BatchMintToken timed out after %ds", self._timeout)
            return MintResult(success=False, error="gateway timeout")
        except Exception as exc:
            log.error("BatchMintToken error: %s", exc)
            return MintResult(success=False, error=str(exc))

        if payload.get("Status") != STATUS_OK:
            error = payload.get("Message") or "mint rejected"
            log.error("BatchMintToken rejected: %s", error)
            return MintResult(success=False, error=error)

        duration = int((time.monotonic() - start) * 1000)
        log.info("Minted %d item(s) of %s in %dms", len(items), token.collection, duration)
        return MintResult(
            success=True,
            tx_id=_tx_id(payload),
            paid_owners=[item.owner for item in items],
        )

    async def _transfer_each(
        self, token: TokenClassKey, items: list[MintItem], minter: str,
    ) -> MintResult:
        """Transfer to each recipient in order, stopping at the first failure."""
        paid: list[str] = []
        tx_id = None
        for item in items:
            body = {
                "from": minter,
                "to": item.owner,
                "quantity": format_quantity(item.quantity),
                "tokenInstance": {**token.to_dict(), "instance": "0"},
            }
            try:
                payload = await self._post("TransferToken", body)
            except httpx.HTTPStatusError as exc:
                error = f"gateway HTTP {exc.response.status_code}"
            except httpx.TimeoutException:
                error = "gateway timeout"
            except Exception as exc:
                error = str(exc)
            else:
                if payload.get("Status") == STATUS_OK:
                    paid.append(item.owner)
                    tx_id = _tx_id(payload) or tx_id
                    continue
                error = payload.get("Message") or "transfer rejected"

            log.error("TransferToken to %s failed: %s", item.owner, error)
            return MintResult(success=False, error=error, tx_id=tx_id, paid_owners=paid)

        log.info("Transferred %s to %d recipient(s)", token.collection, len(paid))
        return MintResult(success=True, tx_id=tx_id, paid_owners=paid)


def _tx_id(payload: dict) -> str | None:
    data = payload.get("Data")
    if isinstance(data, dict):
        return data.get("transactionId") or data.get("txId")
    return payload.get("TransactionId")
