"""FCFS claims and burn confirmation."""

from giveaway_ledger.claims.processor import ClaimProcessor

__all__ = ["ClaimProcessor"]
