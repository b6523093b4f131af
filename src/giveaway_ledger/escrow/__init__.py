"""Escrow accounting and creation-time validation."""

from giveaway_ledger.escrow.calculator import EscrowCalculator
from giveaway_ledger.escrow.validator import GiveawayValidator

__all__ = ["EscrowCalculator", "GiveawayValidator"]
