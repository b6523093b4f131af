"""Winner selection and the winner ledger."""

from giveaway_ledger.distribution.selector import select_winners
from giveaway_ledger.distribution.winners import WinnerLedger

__all__ = ["select_winners", "WinnerLedger"]
