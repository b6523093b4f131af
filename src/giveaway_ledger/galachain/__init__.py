"""GalaChain integration components."""

from giveaway_ledger.galachain.client import GalaChainLedgerClient

__all__ = ["GalaChainLedgerClient"]
