"""Persistence backends."""

from giveaway_ledger.storage.sqlite import SQLiteGiveawayStore

__all__ = ["SQLiteGiveawayStore"]
