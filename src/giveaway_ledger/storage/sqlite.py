"""SQLite implementation of the GiveawayStore protocol."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from decimal import Decimal
from pathlib import Path

import aiosqlite

from giveaway_ledger.clock import format_timestamp, parse_timestamp, utc_now
from giveaway_ledger.errors import AlreadyClaimed, BurnVerificationFailed, GiveawayNotActive
from giveaway_ledger.models.giveaway import (
    Giveaway,
    GiveawayStatus,
    GiveawayTokenType,
    GiveawayType,
    Profile,
    TokenClassKey,
    Win,
    Winner,
)
from giveaway_ledger.models.quantity import format_quantity
from giveaway_ledger.models.records import ActivityRecord

SCHEMA = """
-- Creator profiles (owned by the profile service, mirrored here)
CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY,
    galachain_address TEXT NOT NULL UNIQUE,
    giveaway_wallet_address TEXT NOT NULL,
    created_at TEXT NOT NULL
);

-- Giveaways
CREATE TABLE IF NOT EXISTS giveaways (
    id TEXT PRIMARY KEY,
    creator_id TEXT NOT NULL,
    name TEXT NOT NULL,
    giveaway_type TEXT NOT NULL,
    giveaway_token TEXT NOT NULL,
    giveaway_token_type TEXT NOT NULL,
    win_per_user TEXT NOT NULL,
    max_winners INTEGER NOT NULL,
    start_date_time TEXT NOT NULL,
    end_date_time TEXT NOT NULL,
    claimed_count INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'created',
    distributed INTEGER NOT NULL DEFAULT 0,
    require_burn_token_to_claim INTEGER NOT NULL DEFAULT 0,
    burn_token TEXT,
    burn_token_quantity TEXT,
    errors TEXT NOT NULL DEFAULT '[]',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (claimed_count <= max_winners)
);
CREATE INDEX IF NOT EXISTS idx_giveaways_creator ON giveaways(creator_id);
CREATE INDEX IF NOT EXISTS idx_giveaways_status ON giveaways(status);
CREATE INDEX IF NOT EXISTS idx_giveaways_end ON giveaways(distributed, end_date_time);

-- Distributed giveaway signups, in signup order
CREATE TABLE IF NOT EXISTS signups (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    giveaway_id TEXT NOT NULL,
    address TEXT NOT NULL,
    signed_up_at TEXT NOT NULL,
    UNIQUE (giveaway_id, address)
);

-- Winner ledger: one row per (giveaway, address), never deleted
CREATE TABLE IF NOT EXISTS wins (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    giveaway_id TEXT NOT NULL,
    address TEXT NOT NULL,
    amount_won TEXT NOT NULL,
    giveaway_type TEXT NOT NULL,
    claimed INTEGER NOT NULL DEFAULT 0,
    payment_sent TEXT,
    burn_info TEXT,
    claim_info TEXT,
    error TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (giveaway_id, address)
);
CREATE INDEX IF NOT EXISTS idx_wins_address ON wins(address);

-- Burn proofs already spent on a claim, one use each
CREATE TABLE IF NOT EXISTS used_burns (
    address TEXT NOT NULL,
    proof TEXT NOT NULL,
    giveaway_id TEXT NOT NULL,
    used_at TEXT NOT NULL,
    PRIMARY KEY (address, proof)
);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    giveaway_id TEXT,
    address TEXT,
    amount TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""

_TERMINAL = (GiveawayStatus.COMPLETED.value, GiveawayStatus.CANCELLED.value)


def _now() -> str:
    return format_timestamp(utc_now())


class SQLiteGiveawayStore:
    """SQLite-backed implementation of the GiveawayStore protocol.

    The connection runs in autocommit mode. Multi-statement writes open an
    explicit ``BEGIN IMMEDIATE`` under ``_write_lock`` so statements from
    other coroutines never land inside (or get rolled back with) them.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path, isolation_level=None)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    async def _write(self, sql: str, params: tuple | list = ()) -> None:
        async with self._write_lock:
            await self.db.execute(sql, params)

    # ── Profiles ───────────────────────────────────────────

    async def save_profile(self, profile: Profile) -> None:
        await self._write(
            "INSERT INTO profiles (id, galachain_address, giveaway_wallet_address, created_at)"
            " VALUES (?, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET galachain_address=excluded.galachain_address,"
            " giveaway_wallet_address=excluded.giveaway_wallet_address",
            (profile.id, profile.galachain_address, profile.giveaway_wallet_address, _now()),
        )

    async def get_profile(self, profile_id: str) -> Profile | None:
        async with self.db.execute("SELECT * FROM profiles WHERE id=?", (profile_id,)) as cur:
            row = await cur.fetchone()
            return _row_to_profile(row) if row else None

    async def get_profile_by_address(self, galachain_address: str) -> Profile | None:
        async with self.db.execute(
            "SELECT * FROM profiles WHERE galachain_address=?", (galachain_address,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_profile(row) if row else None

    # ── Giveaways ──────────────────────────────────────────

    async def save_giveaway(self, giveaway: Giveaway) -> None:
        now = _now()
        if not giveaway.created_at:
            giveaway.created_at = now
        giveaway.updated_at = now
        await self._write(
            "INSERT INTO giveaways"
            " (id, creator_id, name, giveaway_type, giveaway_token, giveaway_token_type,"
            "  win_per_user, max_winners, start_date_time, end_date_time, claimed_count,"
            "  status, distributed, require_burn_token_to_claim, burn_token,"
            "  burn_token_quantity, errors, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            " ON CONFLICT(id) DO UPDATE SET"
            " name=excluded.name, start_date_time=excluded.start_date_time,"
            " end_date_time=excluded.end_date_time, status=excluded.status,"
            " distributed=excluded.distributed, errors=excluded.errors,"
            " updated_at=excluded.updated_at",
            (
                giveaway.id,
                giveaway.creator_id,
                giveaway.name,
                giveaway.giveaway_type.value,
                json.dumps(giveaway.giveaway_token.to_dict()),
                giveaway.giveaway_token_type.value,
                format_quantity(giveaway.win_per_user),
                giveaway.max_winners,
                format_timestamp(giveaway.start_date_time),
                format_timestamp(giveaway.end_date_time),
                giveaway.claimed_count,
                giveaway.status.value,
                int(giveaway.distributed),
                int(giveaway.require_burn_token_to_claim),
                json.dumps(giveaway.burn_token.to_dict()) if giveaway.burn_token else None,
                format_quantity(giveaway.burn_token_quantity)
                if giveaway.burn_token_quantity is not None else None,
                json.dumps(giveaway.errors),
                giveaway.created_at,
                giveaway.updated_at,
            ),
        )

    async def get_giveaway(self, giveaway_id: str) -> Giveaway | None:
        async with self.db.execute(
            "SELECT * FROM giveaways WHERE id=?", (giveaway_id,)
        ) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        return await self._hydrate(row)

    async def get_all_giveaways(self) -> list[Giveaway]:
        async with self.db.execute("SELECT * FROM giveaways ORDER BY created_at") as cur:
            rows = await cur.fetchall()
        return [await self._hydrate(row) for row in rows]

    async def get_giveaways_by_creator(
        self, creator_id: str, include_terminal: bool = False,
    ) -> list[Giveaway]:
        if include_terminal:
            sql = "SELECT * FROM giveaways WHERE creator_id=? ORDER BY created_at"
            params: tuple = (creator_id,)
        else:
            sql = (
                "SELECT * FROM giveaways WHERE creator_id=? AND status NOT IN (?, ?)"
                " ORDER BY created_at"
            )
            params = (creator_id, *_TERMINAL)
        async with self.db.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return [await self._hydrate(row) for row in rows]

    async def get_ready_for_settlement(self, now) -> list[Giveaway]:
        async with self.db.execute(
            "SELECT * FROM giveaways"
            " WHERE distributed=0 AND end_date_time < ? AND status IN (?, ?, ?)"
            " ORDER BY end_date_time",
            (
                format_timestamp(now),
                GiveawayStatus.CREATED.value,
                GiveawayStatus.PENDING.value,
                GiveawayStatus.ERRORED.value,
            ),
        ) as cur:
            rows = await cur.fetchall()
        return [await self._hydrate(row) for row in rows]

    async def cancel_giveaway(self, giveaway_id: str) -> bool:
        async with self._write_lock:
            cur = await self.db.execute(
                "UPDATE giveaways SET status=?, updated_at=?"
                " WHERE id=? AND claimed_count=0 AND status NOT IN (?, ?)"
                " AND NOT EXISTS (SELECT 1 FROM wins WHERE giveaway_id=?)",
                (GiveawayStatus.CANCELLED.value, _now(), giveaway_id, *_TERMINAL, giveaway_id),
            )
            return cur.rowcount == 1

    async def add_signup(self, giveaway_id: str, address: str) -> bool:
        async with self._write_lock:
            cur = await self.db.execute(
                "INSERT OR IGNORE INTO signups (giveaway_id, address, signed_up_at)"
                " VALUES (?, ?, ?)",
                (giveaway_id, address, _now()),
            )
            return cur.rowcount == 1

    async def _signups(self, giveaway_id: str) -> list[str]:
        async with self.db.execute(
            "SELECT address FROM signups WHERE giveaway_id=? ORDER BY id", (giveaway_id,)
        ) as cur:
            return [row["address"] async for row in cur]

    async def _hydrate(self, row: aiosqlite.Row) -> Giveaway:
        giveaway = _row_to_giveaway(row)
        giveaway.users_signed_up = await self._signups(giveaway.id)
        return giveaway

    # ── Wins ───────────────────────────────────────────────

    async def save_wins(
        self, giveaway: Giveaway, winners: list[Winner], claimed: bool = True,
    ) -> int:
        now = _now()
        inserted = 0
        async with self._write_lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                for winner in winners:
                    cur = await self.db.execute(
                        "INSERT OR IGNORE INTO wins"
                        " (giveaway_id, address, amount_won, giveaway_type, claimed, created_at)"
                        " VALUES (?, ?, ?, ?, ?, ?)",
                        (
                            giveaway.id,
                            winner.address,
                            format_quantity(winner.amount),
                            giveaway.giveaway_type.value,
                            int(claimed),
                            now,
                        ),
                    )
                    inserted += cur.rowcount
                await self.db.execute("COMMIT")
            except BaseException:
                await self.db.execute("ROLLBACK")
                raise
        return inserted

    async def claim_slot(
        self,
        giveaway: Giveaway,
        address: str,
        amount: Decimal,
        claimed: bool,
        burn_info: str | None = None,
    ) -> Win | None:
        now = _now()
        async with self._write_lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute(
                    "UPDATE giveaways SET claimed_count=claimed_count+1, updated_at=?"
                    " WHERE id=? AND claimed_count < max_winners AND status NOT IN (?, ?)",
                    (now, giveaway.id, *_TERMINAL),
                )
                if cur.rowcount == 0:
                    if await self._is_terminal(giveaway.id):
                        raise GiveawayNotActive("Giveaway is not active")
                    await self.db.execute("ROLLBACK")
                    return None
                if burn_info is not None and not await self._spend_burn(
                    address, burn_info, giveaway.id, now,
                ):
                    raise BurnVerificationFailed("Burn has already been used for a claim")
                cur = await self.db.execute(
                    "INSERT INTO wins"
                    " (giveaway_id, address, amount_won, giveaway_type, claimed,"
                    "  burn_info, created_at)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        giveaway.id,
                        address,
                        format_quantity(amount),
                        giveaway.giveaway_type.value,
                        int(claimed),
                        burn_info,
                        now,
                    ),
                )
                win_id = cur.lastrowid
                await self.db.execute("COMMIT")
            except sqlite3.IntegrityError as exc:
                await self.db.execute("ROLLBACK")
                raise AlreadyClaimed(f"{address} has already claimed this giveaway") from exc
            except BaseException:
                await self.db.execute("ROLLBACK")
                raise
        giveaway.claimed_count += 1
        return await self.get_win(win_id)

    async def claim_win(self, win_id: int, burn_info: str) -> bool:
        """Mark a held Win claimed with its burn. False if it was already claimed."""
        async with self._write_lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                cur = await self.db.execute(
                    "UPDATE wins SET claimed=1, burn_info=? WHERE id=? AND claimed=0",
                    (burn_info, win_id),
                )
                if cur.rowcount == 0:
                    await self.db.execute("ROLLBACK")
                    return False
                async with self.db.execute(
                    "SELECT giveaway_id, address FROM wins WHERE id=?", (win_id,)
                ) as rows:
                    row = await rows.fetchone()
                if not await self._spend_burn(row["address"], burn_info, row["giveaway_id"], _now()):
                    raise BurnVerificationFailed("Burn has already been used for a claim")
                await self.db.execute("COMMIT")
            except BaseException:
                await self.db.execute("ROLLBACK")
                raise
        return True

    async def _spend_burn(
        self, address: str, proof: str, giveaway_id: str, now: str,
    ) -> bool:
        # Runs inside the caller's transaction
        cur = await self.db.execute(
            "INSERT OR IGNORE INTO used_burns (address, proof, giveaway_id, used_at)"
            " VALUES (?, ?, ?, ?)",
            (address, proof, giveaway_id, now),
        )
        return cur.rowcount == 1

    async def _is_terminal(self, giveaway_id: str) -> bool:
        async with self.db.execute(
            "SELECT status FROM giveaways WHERE id=?", (giveaway_id,)
        ) as cur:
            row = await cur.fetchone()
        return row is not None and row["status"] in _TERMINAL

    async def get_win(self, win_id: int) -> Win | None:
        async with self.db.execute("SELECT * FROM wins WHERE id=?", (win_id,)) as cur:
            row = await cur.fetchone()
            return _row_to_win(row) if row else None

    async def get_wins(self, giveaway_id: str) -> list[Win]:
        async with self.db.execute(
            "SELECT * FROM wins WHERE giveaway_id=? ORDER BY id", (giveaway_id,)
        ) as cur:
            return [_row_to_win(row) async for row in cur]

    async def get_wins_by_address(
        self, address: str, unclaimed_only: bool = False,
    ) -> list[Win]:
        sql = "SELECT * FROM wins WHERE address=?"
        if unclaimed_only:
            sql += " AND claimed=0"
        async with self.db.execute(sql + " ORDER BY id", (address,)) as cur:
            return [_row_to_win(row) async for row in cur]

    async def update_win(
        self,
        win_id: int,
        claimed: bool | None = None,
        error: str | None = None,
        claim_info: str | None = None,
        burn_info: str | None = None,
    ) -> None:
        updates: list[str] = []
        params: list = []
        if claimed is not None:
            updates.append("claimed=?")
            params.append(int(claimed))
        if error is not None:
            updates.append("error=?")
            params.append(error)
        if claim_info is not None:
            updates.append("claim_info=?")
            params.append(claim_info)
        if burn_info is not None:
            updates.append("burn_info=?")
            params.append(burn_info)
        if not updates:
            return
        params.append(win_id)
        await self._write(f"UPDATE wins SET {', '.join(updates)} WHERE id=?", params)

    async def mark_wins_paid(self, win_ids: list[int], paid_at: str) -> None:
        if not win_ids:
            return
        placeholders = ",".join("?" for _ in win_ids)
        await self._write(
            f"UPDATE wins SET payment_sent=?, error=NULL"
            f" WHERE id IN ({placeholders}) AND payment_sent IS NULL",
            [paid_at, *win_ids],
        )

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        giveaway_id: str | None = None,
        address: str | None = None,
        amount: str | None = None,
    ) -> None:
        await self._write(
            "INSERT INTO activity_log (event_type, giveaway_id, address, amount, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (event_type, giveaway_id, address, amount, message, _now()),
        )

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    giveaway_id=row["giveaway_id"],
                    address=row["address"],
                    amount=row["amount"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


# ── Row converters ─────────────────────────────────────────


def _row_to_profile(row: aiosqlite.Row) -> Profile:
    return Profile(
        id=row["id"],
        galachain_address=row["galachain_address"],
        giveaway_wallet_address=row["giveaway_wallet_address"],
    )


def _row_to_giveaway(row: aiosqlite.Row) -> Giveaway:
    burn_token = row["burn_token"]
    burn_qty = row["burn_token_quantity"]
    return Giveaway(
        id=row["id"],
        creator_id=row["creator_id"],
        name=row["name"],
        giveaway_type=GiveawayType(row["giveaway_type"]),
        giveaway_token=TokenClassKey.from_dict(json.loads(row["giveaway_token"])),
        giveaway_token_type=GiveawayTokenType(row["giveaway_token_type"]),
        win_per_user=Decimal(row["win_per_user"]),
        max_winners=row["max_winners"],
        start_date_time=parse_timestamp(row["start_date_time"]),
        end_date_time=parse_timestamp(row["end_date_time"]),
        claimed_count=row["claimed_count"],
        status=GiveawayStatus(row["status"]),
        distributed=bool(row["distributed"]),
        require_burn_token_to_claim=bool(row["require_burn_token_to_claim"]),
        burn_token=TokenClassKey.from_dict(json.loads(burn_token)) if burn_token else None,
        burn_token_quantity=Decimal(burn_qty) if burn_qty is not None else None,
        errors=json.loads(row["errors"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_win(row: aiosqlite.Row) -> Win:
    return Win(
        id=row["id"],
        giveaway_id=row["giveaway_id"],
        address=row["address"],
        amount_won=Decimal(row["amount_won"]),
        giveaway_type=GiveawayType(row["giveaway_type"]),
        claimed=bool(row["claimed"]),
        payment_sent=row["payment_sent"],
        burn_info=row["burn_info"],
        claim_info=row["claim_info"],
        error=row["error"],
        created_at=row["created_at"],
    )
