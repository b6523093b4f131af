"""FCFS claims and burn-gated win confirmation."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from giveaway_ledger.errors import (
    AlreadyClaimed,
    BurnVerificationFailed,
    GiveawayNotActive,
    GiveawayNotFound,
    GiveawayValidationError,
    NoSlotsRemaining,
    WinNotFound,
    WrongGiveawayType,
)
from giveaway_ledger.models.giveaway import GiveawayType

from tests.factories import BURN_TOKEN, NOW, TEST_TOKEN, make_burn, make_request, user

DURING = NOW + timedelta(minutes=5)


async def _fcfs(service, **overrides):
    overrides.setdefault("max_winners", 2)
    return await service.create_giveaway(
        make_request(giveaway_type=GiveawayType.FCFS, **overrides), now=NOW,
    )


async def _burn_gated(service, **overrides):
    return await _fcfs(
        service,
        giveaway_token=TEST_TOKEN,
        require_burn_token_to_claim=True,
        burn_token=BURN_TOKEN,
        burn_token_quantity="2",
        **overrides,
    )


# ── Successful claims ────────────────────────────────────────────


async def test_claim_takes_slot_and_pays(service, store, ledger):
    g = await _fcfs(service, win_per_user="3", max_winners=5)
    win = await service.claim_fcfs(g.id, user(1), now=DURING)

    assert win.claimed is True
    assert win.payment_sent is not None
    assert win.claim_info == "tx-1"
    assert ledger.balance_of(user(1)) == 3
    assert (await store.get_giveaway(g.id)).claimed_count == 1


async def test_claims_shrink_the_reservation(service):
    g = await _fcfs(service, win_per_user="2", max_winners=3)
    before = await service.get_escrow_summary(g.creator_id)
    await service.claim_fcfs(g.id, user(1), now=DURING)
    after = await service.get_escrow_summary(g.creator_id)
    assert before.gas_reserved - after.gas_reserved == 1 + 2


async def test_failed_payout_keeps_the_slot(service, store, ledger):
    g = await _fcfs(service)
    ledger.fail_mints = 1
    win = await service.claim_fcfs(g.id, user(1), now=DURING)

    assert win.claimed is True
    assert win.payment_sent is None
    assert win.error == "mock mint failure"
    assert (await store.get_giveaway(g.id)).claimed_count == 1


# ── Rejections ───────────────────────────────────────────────────


async def test_second_claim_by_same_address(service):
    g = await _fcfs(service)
    await service.claim_fcfs(g.id, user(1), now=DURING)
    with pytest.raises(AlreadyClaimed):
        await service.claim_fcfs(g.id, user(1), now=DURING)


async def test_no_slots_left(service):
    g = await _fcfs(service, max_winners=1)
    await service.claim_fcfs(g.id, user(1), now=DURING)
    with pytest.raises(NoSlotsRemaining):
        await service.claim_fcfs(g.id, user(2), now=DURING)


async def test_concurrent_claims_for_last_slot(service, store, ledger):
    """Ten claimants race for one slot → exactly one Win, nine NoSlotsRemaining."""
    g = await _fcfs(service, max_winners=1)
    results = await asyncio.gather(
        *(service.claim_fcfs(g.id, user(n), now=DURING) for n in range(10)),
        return_exceptions=True,
    )

    wins = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(wins) == 1
    assert all(isinstance(r, NoSlotsRemaining) for r in rejected)
    assert (await store.get_giveaway(g.id)).claimed_count == 1
    assert len(await store.get_wins(g.id)) == 1
    assert len(ledger.minted_items) == 1


async def test_claim_outside_window(service):
    g = await _fcfs(service)
    with pytest.raises(GiveawayNotActive):
        await service.claim_fcfs(g.id, user(1), now=g.end_date_time)
    with pytest.raises(GiveawayNotActive):
        await service.claim_fcfs(g.id, user(1), now=NOW - timedelta(seconds=1))


async def test_claim_on_distributed_giveaway(service):
    g = await service.create_giveaway(make_request(), now=NOW)
    with pytest.raises(WrongGiveawayType):
        await service.claim_fcfs(g.id, user(1), now=DURING)


async def test_claim_unknown_giveaway(service):
    with pytest.raises(GiveawayNotFound):
        await service.claim_fcfs("missing", user(1), now=DURING)


async def test_claim_with_bare_hex_address(service, store):
    g = await _fcfs(service)
    with pytest.raises(GiveawayValidationError):
        await service.claim_fcfs(g.id, "0x" + "1" * 40, now=DURING)
    assert (await store.get_giveaway(g.id)).claimed_count == 0


async def test_cancelled_giveaway_cannot_be_claimed(service):
    g = await _fcfs(service)
    await service.cancel_giveaway(g.id, g.creator_id)
    with pytest.raises(GiveawayNotActive):
        await service.claim_fcfs(g.id, user(1), now=DURING)


# ── Burn-gated claims ────────────────────────────────────────────


async def test_burn_gated_claim_without_proof_holds_slot_unpaid(service, store, ledger):
    g = await _burn_gated(service)
    win = await service.claim_fcfs(g.id, user(1), now=DURING)

    assert win.claimed is False
    assert win.payment_sent is None
    assert ledger.mint_calls == []
    assert (await store.get_giveaway(g.id)).claimed_count == 1
    assert [w.id for w in await service.get_claimable_wins(user(1))] == [win.id]


async def test_burn_gated_claim_with_proof_pays(service, ledger):
    g = await _burn_gated(service)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)

    win = await service.claim_fcfs(
        g.id, user(1), burn_proof=make_burn(quantity="2"), now=DURING,
    )

    assert win.claimed is True
    assert win.burn_info == "burn-tx-1"
    assert ledger.balance_of(user(1), TEST_TOKEN) == 1


@pytest.mark.parametrize(
    "proof",
    [
        make_burn(quantity="1"),  # below the required 2
        make_burn(quantity="2", token=TEST_TOKEN),  # wrong token
        make_burn(quantity="2", proof="never-happened"),
    ],
)
async def test_bad_burn_consumes_no_slot(service, store, ledger, proof):
    g = await _burn_gated(service)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)

    with pytest.raises(BurnVerificationFailed):
        await service.claim_fcfs(g.id, user(1), burn_proof=proof, now=DURING)
    assert (await store.get_giveaway(g.id)).claimed_count == 0
    assert await store.get_wins(g.id) == []


async def test_confirm_burn_pays_held_slot(service, ledger):
    g = await _burn_gated(service)
    held = await service.claim_fcfs(g.id, user(1), now=DURING)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 5)

    paid = await service.confirm_burn(held.id, user(1), make_burn(quantity="5"), now=DURING)

    assert paid.claimed is True
    assert paid.payment_sent is not None
    assert ledger.balance_of(user(1), TEST_TOKEN) == 1
    assert await service.get_claimable_wins(user(1)) == []


async def test_confirm_burn_rejections(service, ledger):
    g = await _burn_gated(service)
    held = await service.claim_fcfs(g.id, user(1), now=DURING)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)

    with pytest.raises(WinNotFound):
        await service.confirm_burn(held.id, user(2), make_burn(quantity="2"), now=DURING)
    with pytest.raises(WinNotFound):
        await service.confirm_burn(9999, user(1), make_burn(quantity="2"), now=DURING)
    with pytest.raises(BurnVerificationFailed):
        await service.confirm_burn(held.id, user(1), make_burn(proof="nope", quantity="2"), now=DURING)

    await service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=DURING)
    with pytest.raises(AlreadyClaimed):
        await service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=DURING)


async def test_concurrent_confirmations_pay_once(service, store, ledger):
    g = await _burn_gated(service)
    held = await service.claim_fcfs(g.id, user(1), now=DURING)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)
    ledger.mint_delay = 0.01

    results = await asyncio.gather(
        service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=DURING),
        service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=DURING),
        return_exceptions=True,
    )

    paid = [r for r in results if not isinstance(r, Exception)]
    assert len(paid) == 1
    assert [type(r) for r in results if isinstance(r, Exception)] == [AlreadyClaimed]
    assert len(ledger.mint_calls) == 1
    assert ledger.balance_of(user(1), TEST_TOKEN) == 1


async def test_confirmation_racing_settlement_pays_once(service, store, ledger):
    g = await _burn_gated(service)
    held = await service.claim_fcfs(g.id, user(1), now=DURING)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)
    ledger.mint_delay = 0.01
    after_end = g.end_date_time + timedelta(seconds=1)

    await asyncio.gather(
        service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=after_end),
        service.run_settlement_tick(now=after_end),
    )

    assert len(ledger.mint_calls) == 1
    assert ledger.balance_of(user(1), TEST_TOKEN) == 1
    assert (await store.get_win(held.id)).payment_sent is not None


# ── Burn proofs are single use ───────────────────────────────────


async def test_burn_proof_not_reusable_across_giveaways(service, store, ledger):
    first = await _burn_gated(service)
    second = await _burn_gated(service, name="Second drop")
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)

    await service.claim_fcfs(first.id, user(1), burn_proof=make_burn(quantity="2"), now=DURING)
    with pytest.raises(BurnVerificationFailed, match="already been used"):
        await service.claim_fcfs(
            second.id, user(1), burn_proof=make_burn(quantity="2"), now=DURING,
        )

    assert ledger.balance_of(user(1), TEST_TOKEN) == 1
    assert (await store.get_giveaway(second.id)).claimed_count == 0
    assert await store.get_wins(second.id) == []


async def test_spent_burn_cannot_confirm_a_held_win(service, store, ledger):
    first = await _burn_gated(service)
    second = await _burn_gated(service, name="Second drop")
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)
    await service.claim_fcfs(first.id, user(1), burn_proof=make_burn(quantity="2"), now=DURING)
    held = await service.claim_fcfs(second.id, user(1), now=DURING)

    with pytest.raises(BurnVerificationFailed, match="already been used"):
        await service.confirm_burn(held.id, user(1), make_burn(quantity="2"), now=DURING)

    unchanged = await store.get_win(held.id)
    assert unchanged.claimed is False
    assert unchanged.burn_info is None
    assert ledger.balance_of(user(1), TEST_TOKEN) == 1


async def test_same_proof_from_another_burner_is_distinct(service, ledger):
    g = await _burn_gated(service)
    ledger.add_burn(user(1), "burn-tx-1", BURN_TOKEN, 2)
    ledger.add_burn(user(2), "burn-tx-1", BURN_TOKEN, 2)

    for n in (1, 2):
        await service.claim_fcfs(g.id, user(n), burn_proof=make_burn(quantity="2"), now=DURING)
    assert ledger.balance_of(user(2), TEST_TOKEN) == 1
