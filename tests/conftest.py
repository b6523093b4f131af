"""Shared fixtures for giveaway_ledger tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from giveaway_ledger.models.config import GALA_TOKEN, LedgerConfig, SchedulerConfig, ServiceConfig
from giveaway_ledger.models.giveaway import Giveaway
from giveaway_ledger.service import GiveawayService
from giveaway_ledger.storage.sqlite import SQLiteGiveawayStore

from tests.factories import GIVEAWAY_WALLET, TEST_TOKEN, make_profile
from tests.mocks import CyclicRandom, MockIdentity, MockLedger


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add ledger info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Ledger"] = "GalaChain token contract (mocked)"
    meta["Gas token"] = "GALA"
    meta["Store"] = "SQLite (in-memory)"


def make_test_config(**overrides) -> ServiceConfig:
    """Build a ServiceConfig suitable for testing."""
    defaults = dict(
        iteration_cap=1000,
        min_window_minutes=10,
        scheduler=SchedulerConfig(tick_interval=1, error_backoff=1),
        ledger=LedgerConfig(base_url="http://127.0.0.1:9310", timeout=5, gas_token=GALA_TOKEN),
        db_path=":memory:",
    )
    defaults.update(overrides)
    return ServiceConfig(**defaults)


async def seed_giveaway(store, giveaway: Giveaway) -> Giveaway:
    """Persist a giveaway built by make_giveaway, signups included."""
    await store.save_giveaway(giveaway)
    for address in giveaway.users_signed_up:
        await store.add_signup(giveaway.id, address)
    return await store.get_giveaway(giveaway.id)


@pytest.fixture
def test_config():
    """Default ServiceConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteGiveawayStore with the creator profile."""
    s = SQLiteGiveawayStore(":memory:")
    await s.initialize()
    await s.save_profile(make_profile())
    yield s
    await s.close()


@pytest.fixture
def ledger():
    """MockLedger where the giveaway wallet holds 50 GALA and 1000 TestCoin."""
    m = MockLedger()
    m.set_balance(GIVEAWAY_WALLET, GALA_TOKEN, 50)
    m.set_balance(GIVEAWAY_WALLET, TEST_TOKEN, 1000)
    m.set_allowance(GIVEAWAY_WALLET, TEST_TOKEN, 1000)
    return m


@pytest.fixture
def identity():
    return MockIdentity()


@pytest.fixture
def rng():
    return CyclicRandom(1)


@pytest.fixture
def service(store, ledger, identity, test_config, rng):
    """Fully wired GiveawayService over the in-memory store and mocks."""
    return GiveawayService(store, ledger, identity, test_config, rng=rng)
