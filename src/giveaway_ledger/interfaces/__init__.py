"""Protocol interfaces for all giveaway_ledger collaborators."""

from giveaway_ledger.interfaces.identity import IdentityResolver
from giveaway_ledger.interfaces.ledger import LedgerClient
from giveaway_ledger.interfaces.rng import RandomSource
from giveaway_ledger.interfaces.store import GiveawayStore

__all__ = [
    "IdentityResolver",
    "LedgerClient",
    "RandomSource",
    "GiveawayStore",
]
