"""Settlement of ended giveaways."""

from giveaway_ledger.settlement.scheduler import SettlementScheduler

__all__ = ["SettlementScheduler"]
