"""IdentityResolver protocol - recovers the signer of a creation request."""

from __future__ import annotations

from typing import Protocol


class IdentityResolver(Protocol):
    """Maps a signed payload to the ledger address that signed it."""

    def recover_address(self, payload: dict, signature: str) -> str:
        """Return the signer's ledger address, e.g. ``eth|ABC...``."""
        ...
