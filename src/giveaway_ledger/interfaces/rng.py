"""RandomSource protocol - the winner selector's only source of chance."""

from __future__ import annotations

from typing import Protocol


class RandomSource(Protocol):
    """Anything with ``random() -> float`` in [0, 1), e.g. ``random.SystemRandom``."""

    def random(self) -> float:
        ...
