"""Token key helpers and GalaChain payload parsing."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from giveaway_ledger.models.config import GALA_TOKEN
from giveaway_ledger.models.giveaway import TokenClassKey
from giveaway_ledger.models.quantity import ZERO, add, subtract, sum_quantities, to_quantity

CHAIN_ADDRESS_PREFIXES = ("eth|", "client|")


def token_to_readable(token: TokenClassKey) -> str:
    """Short display name: ``GALA`` for the native token, the full key otherwise."""
    if token == GALA_TOKEN:
        return "GALA"
    return f"{token.collection}|{token.category}|{token.type}|{token.additional_key}"


def tokens_equal(a: TokenClassKey | dict, b: TokenClassKey | dict) -> bool:
    """Compare two token keys, accepting raw ledger dicts on either side.

    Instance keys are fungible only at instance 0.
    """
    if isinstance(a, dict):
        if str(a.get("instance", "0")) != "0":
            return False
        a = TokenClassKey.from_dict(a)
    if isinstance(b, dict):
        if str(b.get("instance", "0")) != "0":
            return False
        b = TokenClassKey.from_dict(b)
    return a == b


def is_chain_address(address: str) -> bool:
    return address.startswith(CHAIN_ADDRESS_PREFIXES)


@dataclass
class CombinedAllowance:
    """Usable allowance for one token class, summed across grants."""

    token: TokenClassKey
    quantity: Decimal
    unusable_quantity: Decimal = ZERO


def combine_allowances(allowances: list[dict]) -> list[CombinedAllowance]:
    """Fold raw allowance grants into one usable figure per token class.

    Each grant contributes ``min(quantity - quantitySpent, uses - usesSpent)``.
    Quantity a grant cannot spend for lack of uses is tracked separately.
    """
    combined: dict[TokenClassKey, CombinedAllowance] = {}
    for grant in allowances or []:
        token = TokenClassKey.from_dict(grant)
        entry = combined.setdefault(token, CombinedAllowance(token=token, quantity=ZERO))

        quantity_available = subtract(
            to_quantity(grant.get("quantity", "0")),
            to_quantity(grant.get("quantitySpent", "0")),
        )
        uses_available = subtract(
            to_quantity(grant.get("uses", "0")),
            to_quantity(grant.get("usesSpent", "0")),
        )

        if uses_available < quantity_available:
            entry.quantity = add(entry.quantity, uses_available)
            entry.unusable_quantity = add(
                entry.unusable_quantity, subtract(quantity_available, uses_available),
            )
        else:
            entry.quantity = add(entry.quantity, quantity_available)
    return list(combined.values())


def spendable_balance(balances: list[dict], token: TokenClassKey) -> Decimal:
    """Balance of `token` net of locked holds, across every matching row."""
    total = ZERO
    for row in balances or []:
        if not tokens_equal(row, token):
            continue
        locked = sum_quantities(
            to_quantity(hold.get("quantity", "0")) for hold in row.get("lockedHolds") or []
        )
        total = add(total, subtract(to_quantity(row.get("quantity", "0")), locked))
    return total if total > ZERO else ZERO
