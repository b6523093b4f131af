"""Escrow calculator: what live giveaways hold back from their creator."""

from __future__ import annotations

from decimal import Decimal

from giveaway_ledger.escrow.calculator import EscrowCalculator
from giveaway_ledger.models.config import GALA_TOKEN
from giveaway_ledger.models.giveaway import GiveawayStatus, GiveawayTokenType, GiveawayType

from tests.factories import TEST_TOKEN, make_giveaway, user

calc = EscrowCalculator(GALA_TOKEN)


def _fcfs(**kw):
    return make_giveaway(
        giveaway_type=GiveawayType.FCFS,
        giveaway_token=TEST_TOKEN,
        giveaway_token_type=GiveawayTokenType.ALLOWANCE,
        **kw,
    )


def _distributed(**kw):
    kw.setdefault("giveaway_token", TEST_TOKEN)
    kw.setdefault("giveaway_token_type", GiveawayTokenType.ALLOWANCE)
    return make_giveaway(giveaway_type=GiveawayType.DISTRIBUTED, **kw)


# ── Payout reservation ───────────────────────────────────────────


def test_fcfs_reservation_shrinks_with_each_claim():
    """Reservation is win_per_user x unclaimed slots and never grows."""
    previous = None
    for claimed in range(0, 6):
        g = _fcfs(win_per_user="2.5", max_winners=5, claimed_count=claimed)
        reserved = calc.compute_reserved_amount(TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [g])
        assert reserved == Decimal("2.5") * (5 - claimed)
        if previous is not None:
            assert reserved <= previous
        previous = reserved
    assert previous == 0


def test_distributed_reserves_full_pool_regardless_of_signups():
    empty = _distributed(win_per_user="3", max_winners=4)
    busy = _distributed(win_per_user="3", max_winners=4, users_signed_up=[user(i) for i in range(9)])
    for g in (empty, busy):
        assert calc.compute_reserved_amount(TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [g]) == 12


def test_distributed_reservation_holds_while_pending_and_errored():
    for status in (GiveawayStatus.CREATED, GiveawayStatus.PENDING, GiveawayStatus.ERRORED):
        g = _distributed(win_per_user="1", max_winners=10, status=status)
        assert calc.compute_reserved_amount(TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [g]) == 10


def test_terminal_giveaways_release_everything():
    done = _distributed(max_winners=10, status=GiveawayStatus.COMPLETED, distributed=True)
    gone = _fcfs(max_winners=10, status=GiveawayStatus.CANCELLED)
    assert calc.compute_reserved_amount(TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [done, gone]) == 0
    assert calc.compute_reserved_gas_fee([done, gone]) == 0


def test_only_matching_token_and_type_count():
    same = _distributed(max_winners=5)
    other_type = _distributed(max_winners=7, giveaway_token_type=GiveawayTokenType.BALANCE)
    other_token = _distributed(max_winners=11, giveaway_token=GALA_TOKEN)
    reserved = calc.compute_reserved_amount(
        TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [same, other_type, other_token],
    )
    assert reserved == 5


def test_over_claimed_fcfs_clamps_to_zero():
    g = _fcfs(max_winners=2, claimed_count=3)
    assert calc.compute_reserved_amount(TEST_TOKEN, GiveawayTokenType.ALLOWANCE, [g]) == 0
    assert calc.compute_reserved_gas_fee([g]) == 0


# ── Gas reservation ──────────────────────────────────────────────


def test_gas_is_one_unit_per_open_slot():
    distributed = _distributed(max_winners=4)
    fcfs = _fcfs(max_winners=5, claimed_count=2)
    assert calc.compute_reserved_gas_fee([distributed, fcfs]) == 4 + 3


def test_gas_token_paid_from_balance_shares_the_gas_line():
    """A GALA balance giveaway holds its pool on the gas line as well."""
    g = make_giveaway(
        giveaway_token=GALA_TOKEN,
        giveaway_token_type=GiveawayTokenType.BALANCE,
        win_per_user="5",
        max_winners=2,
    )
    assert calc.compute_reserved_gas_fee([g]) == 2 + 10


def test_gas_token_paid_from_allowance_does_not():
    g = make_giveaway(
        giveaway_token=GALA_TOKEN,
        giveaway_token_type=GiveawayTokenType.ALLOWANCE,
        win_per_user="5",
        max_winners=2,
    )
    assert calc.compute_reserved_gas_fee([g]) == 2


def test_estimate_gas_fee():
    assert calc.estimate_gas_fee(GiveawayType.DISTRIBUTED, 7) == 7
    assert calc.estimate_gas_fee(GiveawayType.FCFS, 3) == 3


# ── Summary ──────────────────────────────────────────────────────


def test_summary_groups_by_token_and_type():
    giveaways = [
        _distributed(max_winners=5),
        _fcfs(max_winners=4, claimed_count=1),
        make_giveaway(win_per_user="2", max_winners=3),  # GALA balance
        _distributed(max_winners=100, status=GiveawayStatus.COMPLETED),
    ]
    summary = calc.summarize("creator-1", giveaways)

    assert summary.reserved_for(TEST_TOKEN, "Allowance") == 5 + 3
    assert summary.reserved_for(GALA_TOKEN, "Balance") == 6
    assert summary.reserved_for(GALA_TOKEN, "Allowance") == 0
    # 5 + 3 + 3 slots, plus the GALA balance pool of 6
    assert summary.gas_reserved == 17
    line = next(r for r in summary.reservations if r.token == TEST_TOKEN)
    assert line.giveaways == 2
