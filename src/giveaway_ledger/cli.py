"""CLI entry point for the giveaway_ledger daemon."""

from __future__ import annotations

import asyncio
import logging

import click

from giveaway_ledger.config import load_config
from giveaway_ledger.daemon import run_daemon
from giveaway_ledger.galachain.client import GalaChainLedgerClient
from giveaway_ledger.galachain.tokens import token_to_readable
from giveaway_ledger.models.config import ServiceConfig
from giveaway_ledger.models.giveaway import GiveawayType
from giveaway_ledger.models.quantity import format_quantity
from giveaway_ledger.service import GiveawayService
from giveaway_ledger.storage.sqlite import SQLiteGiveawayStore

GIVEAWAY_TYPES = {
    "distributed": GiveawayType.DISTRIBUTED,
    "fcfs": GiveawayType.FCFS,
}


def _service(cfg: ServiceConfig, store: SQLiteGiveawayStore) -> GiveawayService:
    ledger = GalaChainLedgerClient(
        cfg.ledger.base_url, cfg.ledger.contract_path, cfg.ledger.timeout, cfg.ledger.api_key,
    )
    return GiveawayService(store, ledger, config=cfg)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """giveaway_ledger - Token giveaway escrow and settlement daemon."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Daemon ─────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the settlement daemon."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Starting giveaway_ledger daemon (tick: {cfg.scheduler.tick_interval}s)")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.pass_context
def tick(ctx: click.Context) -> None:
    """Run a single settlement tick and exit."""
    cfg = load_config(ctx.obj["config_path"])

    async def _tick():
        store = SQLiteGiveawayStore(cfg.db_path)
        await store.initialize()
        try:
            report = await _service(cfg, store).run_settlement_tick()
            click.echo(
                f"examined={report.examined} completed={report.completed} "
                f"cancelled={report.cancelled} failed={report.failed} "
                f"skipped={report.skipped} duration={report.duration_ms}ms"
            )
        finally:
            await store.close()

    asyncio.run(_tick())


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show service configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Ledger URL:     {cfg.ledger.base_url}/{cfg.ledger.contract_path}")
    click.echo(f"Gas token:      {token_to_readable(cfg.ledger.gas_token)}")
    click.echo(f"Tick interval:  {cfg.scheduler.tick_interval}s")
    click.echo(f"Iteration cap:  {cfg.iteration_cap}")
    click.echo(f"Min window:     {cfg.min_window_minutes} min")
    click.echo(f"DB path:        {cfg.db_path}")
    click.echo(f"API key:        {'***configured***' if cfg.ledger.api_key else '(not set)'}")


@cli.command("estimate-fee")
@click.argument("giveaway_type", type=click.Choice(sorted(GIVEAWAY_TYPES)))
@click.argument("max_winners", type=click.IntRange(min=1))
@click.pass_context
def estimate_fee(ctx: click.Context, giveaway_type: str, max_winners: int) -> None:
    """Gas a giveaway of this shape must hold in reserve."""
    cfg = load_config(ctx.obj["config_path"])
    store = SQLiteGiveawayStore(cfg.db_path)
    fee = _service(cfg, store).estimate_gas_fee(GIVEAWAY_TYPES[giveaway_type], max_winners)
    click.echo(f"{format_quantity(fee)} {token_to_readable(cfg.ledger.gas_token)}")


@cli.command()
@click.argument("creator_id")
@click.pass_context
def escrow(ctx: click.Context, creator_id: str) -> None:
    """Show what a creator's live giveaways hold in reserve."""
    cfg = load_config(ctx.obj["config_path"])

    async def _escrow():
        store = SQLiteGiveawayStore(cfg.db_path)
        await store.initialize()
        try:
            summary = await _service(cfg, store).get_escrow_summary(creator_id)
            if not summary.reservations:
                click.echo("No active reservations.")
            for r in summary.reservations:
                click.echo(
                    f"  {token_to_readable(r.token):30s} {r.token_type:9s} "
                    f"reserved={format_quantity(r.reserved)} giveaways={r.giveaways}"
                )
            click.echo(
                f"Gas reserved: {format_quantity(summary.gas_reserved)} "
                f"{token_to_readable(cfg.ledger.gas_token)}"
            )
        finally:
            await store.close()

    asyncio.run(_escrow())


@cli.command()
@click.option("--address", default=None, help="Mark giveaways this address has won")
@click.pass_context
def giveaways(ctx: click.Context, address: str | None) -> None:
    """List giveaways."""
    cfg = load_config(ctx.obj["config_path"])

    async def _giveaways():
        store = SQLiteGiveawayStore(cfg.db_path)
        await store.initialize()
        try:
            views = await _service(cfg, store).list_giveaways(address)
            if not views:
                click.echo("No giveaways.")
                return

            for v in views:
                extra = f" claims_left={v.claims_left}" if v.claims_left is not None else ""
                won = " [won]" if v.is_winner else ""
                click.echo(
                    f"  [{v.status:9s}] {v.id[:12]} {v.name!r} {v.giveaway_type} "
                    f"{v.win_per_user}x{v.max_winners} signups={v.signups} "
                    f"ends={v.end_date_time}{extra}{won}"
                )
        finally:
            await store.close()

    asyncio.run(_giveaways())


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of recent entries to show")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show recent activity."""
    cfg = load_config(ctx.obj["config_path"])

    async def _activity():
        store = SQLiteGiveawayStore(cfg.db_path)
        await store.initialize()
        try:
            entries = await store.get_recent_activity(limit)
            if not entries:
                click.echo("No activity recorded.")
                return

            for a in entries:
                target = f" giveaway={a.giveaway_id[:12]}" if a.giveaway_id else ""
                click.echo(f"  {a.created_at} {a.event_type:20s} {a.message}{target}")
        finally:
            await store.close()

    asyncio.run(_activity())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
