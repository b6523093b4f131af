"""Random winner selection for distributed giveaways."""

from __future__ import annotations

import logging
import random
from decimal import Decimal

from giveaway_ledger.errors import NoParticipantsError
from giveaway_ledger.interfaces.rng import RandomSource
from giveaway_ledger.models.giveaway import Winner
from giveaway_ledger.models.quantity import ONE, ZERO, add, floor_divide, subtract

log = logging.getLogger(__name__)

DEFAULT_ITERATION_CAP = 1000


def select_winners(
    signed_up: list[str],
    token_pool: Decimal,
    iteration_cap: int = DEFAULT_ITERATION_CAP,
    winner_count: int | None = None,
    rng: RandomSource | None = None,
) -> list[Winner]:
    """Split `token_pool` among randomly drawn signups.

    Each draw awards ``min(remaining, min_per_iteration)`` to one signup,
    where ``min_per_iteration`` is the pool divided by the draw count, floored,
    or 1 for pools no bigger than the draw count. Draws continue until the pool
    is exhausted, so the awards always sum to exactly `token_pool`. An address
    drawn twice accumulates, and winners are returned in first-win order.
    """
    if token_pool < ZERO:
        raise ValueError(f"token_pool must not be negative: {token_pool}")
    if token_pool == ZERO:
        return []
    if not signed_up:
        raise NoParticipantsError("no users signed up")

    rng = rng or random.SystemRandom()
    iterations = min(iteration_cap, winner_count or iteration_cap)
    if iterations < 1:
        raise ValueError(f"iteration count must be at least 1: {iterations}")

    if token_pool <= iterations:
        min_per_iteration = ONE
    else:
        min_per_iteration = floor_divide(token_pool, iterations)

    count = len(signed_up)
    totals: dict[str, Decimal] = {}
    remaining = token_pool
    draws = 0
    while remaining > ZERO:
        # int() floors; min() guards an rng that returns exactly 1.0
        index = min(int(rng.random() * count), count - 1)
        address = signed_up[index]
        award = min(remaining, min_per_iteration)
        totals[address] = add(totals.get(address, ZERO), award)
        remaining = subtract(remaining, award)
        draws += 1

    log.debug(
        "Drew %d award(s) of up to %s across %d signup(s): %d winner(s)",
        draws, min_per_iteration, count, len(totals),
    )
    return [Winner(address=address, amount=amount) for address, amount in totals.items()]
