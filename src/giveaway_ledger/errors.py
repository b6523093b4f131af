"""Exception taxonomy for giveaway operations.

Validation errors and business-rule rejections propagate to the caller.
Ledger failures during settlement are caught per giveaway by the scheduler.
"""

from __future__ import annotations

from decimal import Decimal

from giveaway_ledger.models.quantity import format_quantity


class GiveawayError(Exception):
    """Base class for everything this package raises on purpose."""


class GiveawayValidationError(GiveawayError):
    """Request shape is wrong. Raised before any ledger call."""


class Rejection(GiveawayError):
    """Expected, non-retryable business-rule outcome."""

    reason = "rejected"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProfileNotFound(Rejection):
    reason = "profile_not_found"


class InvalidTemporalWindow(Rejection):
    reason = "invalid_temporal_window"


class InsufficientFunds(Rejection):
    """A ledger line cannot cover the giveaway net of existing escrow."""

    reason = "insufficient_funds"

    def __init__(self, message: str, deficit: Decimal) -> None:
        super().__init__(message)
        self.deficit = deficit


class InsufficientBalance(InsufficientFunds):
    reason = "insufficient_balance"

    def __init__(self, deficit: Decimal) -> None:
        super().__init__(
            "You need to transfer more tokens before you can start this giveaway. "
            f"Need an additional {format_quantity(deficit)}",
            deficit,
        )


class InsufficientAllowance(InsufficientFunds):
    reason = "insufficient_allowance"

    def __init__(self, deficit: Decimal) -> None:
        super().__init__(
            "You need to grant more tokens before you can start this giveaway. "
            f"Need an additional {format_quantity(deficit)}",
            deficit,
        )


class InsufficientGasFee(InsufficientFunds):
    reason = "insufficient_gas_fee"

    def __init__(self, deficit: Decimal, gas_token_name: str = "GALA") -> None:
        super().__init__(
            f"Insufficient {gas_token_name} balance in giveaway wallet, "
            f"need additional {format_quantity(deficit)}",
            deficit,
        )


class GiveawayNotFound(Rejection):
    reason = "not_found"


class GiveawayNotStarted(Rejection):
    reason = "not_started"


class GiveawayNotActive(Rejection):
    reason = "not_active"


class AlreadySignedUp(Rejection):
    reason = "already_signed_up"


class WrongGiveawayType(Rejection):
    reason = "wrong_type"


class AlreadyClaimed(Rejection):
    reason = "already_claimed"


class NoSlotsRemaining(Rejection):
    reason = "no_slots_remaining"


class BurnVerificationFailed(Rejection):
    reason = "burn_verification_failed"


class WinNotFound(Rejection):
    reason = "win_not_found"


class NotCancellable(Rejection):
    reason = "not_cancellable"


class NoParticipantsError(GiveawayError):
    """A non-empty pool was drawn against zero signups."""


class LedgerError(GiveawayError):
    """Ledger read failed, or the gateway could not be reached."""
