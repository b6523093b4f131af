"""giveaway_ledger - token giveaway escrow accounting, winner selection and settlement."""

__version__ = "0.1.0"
