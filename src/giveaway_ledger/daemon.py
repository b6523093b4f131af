"""Settlement daemon - wires the components together and ticks on a timer."""

from __future__ import annotations

import asyncio
import logging
import signal

from giveaway_ledger.galachain.client import GalaChainLedgerClient
from giveaway_ledger.galachain.tokens import token_to_readable
from giveaway_ledger.interfaces.identity import IdentityResolver
from giveaway_ledger.models.config import ServiceConfig
from giveaway_ledger.service import GiveawayService
from giveaway_ledger.storage.sqlite import SQLiteGiveawayStore

log = logging.getLogger(__name__)


class GiveawayDaemon:
    """Runs settlement ticks until stopped.

    Creation, signups and claims arrive through the service from whatever
    front end embeds it; the daemon only owns the settlement timer.
    """

    def __init__(
        self, cfg: ServiceConfig, identity: IdentityResolver | None = None,
    ) -> None:
        self._cfg = cfg
        self._running = False
        self._stopped = asyncio.Event()

        self.store = SQLiteGiveawayStore(cfg.db_path)
        self.ledger = GalaChainLedgerClient(
            cfg.ledger.base_url,
            cfg.ledger.contract_path,
            cfg.ledger.timeout,
            cfg.ledger.api_key,
        )
        self.service = GiveawayService(self.store, self.ledger, identity, cfg)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Initialize the store and run the settlement loop."""
        log.info("Starting giveaway_ledger daemon")
        log.info("  Ledger: %s/%s", self._cfg.ledger.base_url, self._cfg.ledger.contract_path)
        log.info("  Gas token: %s", token_to_readable(self._cfg.ledger.gas_token))
        log.info("  Tick interval: %ds", self._cfg.scheduler.tick_interval)
        log.info("  DB: %s", self._cfg.db_path)

        await self.store.initialize()
        self._running = True
        self._stopped.clear()
        await self.store.log_activity("daemon_started", "Daemon started")

        try:
            await self._main_loop()
        finally:
            await self.store.log_activity("daemon_stopped", "Daemon stopped")
            await self.store.close()
            log.info("Daemon shut down cleanly")

    async def stop(self) -> None:
        """Signal the daemon to stop gracefully."""
        log.info("Stop requested")
        self._running = False
        self._stopped.set()

    async def _main_loop(self) -> None:
        while self._running:
            try:
                await self.service.run_settlement_tick()
                await self._sleep(self._cfg.scheduler.tick_interval)

            except asyncio.CancelledError:
                log.info("Main loop cancelled")
                break
            except Exception as exc:
                log.error("Main loop error: %s", exc, exc_info=True)
                await self.store.log_activity("error", str(exc))
                await self._sleep(self._cfg.scheduler.error_backoff)

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early when stop() is called."""
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


async def run_daemon(cfg: ServiceConfig) -> None:
    """Entry point for running the daemon."""
    daemon = GiveawayDaemon(cfg)

    loop = asyncio.get_running_loop()

    def _signal_handler():
        asyncio.ensure_future(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    await daemon.start()
