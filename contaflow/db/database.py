import asyncio
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from weakref import WeakKeyDictionary

import aiosqlite

from contaflow.config import settings

SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    name TEXT,
    telegram_chat_id TEXT UNIQUE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS telegram_link_codes (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    code TEXT NOT NULL,
    expires_at TIMESTAMP NOT NULL,
    used BOOLEAN NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    amount REAL NOT NULL CHECK(amount > 0),
    description TEXT,
    type TEXT NOT NULL CHECK(type IN ('income', 'expense')),
    date DATE NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS leisure_budget (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE REFERENCES profiles(user_id) ON DELETE CASCADE,
    monthly_amount REAL NOT NULL DEFAULT 0,
    spent_this_month REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS goals (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    target_amount REAL NOT NULL,
    current_amount REAL NOT NULL DEFAULT 0,
    is_achieved BOOLEAN NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS debts (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    remaining_amount REAL NOT NULL DEFAULT 0,
    monthly_payment REAL,
    is_paid BOOLEAN NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS income_sources (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    amount REAL NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_link_codes_code ON telegram_link_codes(code, used);
CREATE INDEX IF NOT EXISTS idx_link_codes_user ON telegram_link_codes(user_id);
CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, date);
CREATE INDEX IF NOT EXISTS idx_goals_user ON goals(user_id, is_achieved);
CREATE INDEX IF NOT EXISTS idx_debts_user ON debts(user_id, is_paid);
CREATE INDEX IF NOT EXISTS idx_income_sources_user ON income_sources(user_id);
"""

_db: aiosqlite.Connection | None = None
_write_locks: WeakKeyDictionary = WeakKeyDictionary()


def format_timestamp(dt: datetime) -> str:
    """Render ``dt`` in the same UTC text form SQLite uses for CURRENT_TIMESTAMP."""
    return dt.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S")


async def get_db() -> aiosqlite.Connection:
    global _db
    if _db is None:
        _db = await aiosqlite.connect(settings.db_path)
        _db.row_factory = aiosqlite.Row
        await _db.execute("PRAGMA journal_mode=WAL")
        await _db.execute("PRAGMA foreign_keys=ON")
    return _db


async def close_db():
    global _db
    if _db is not None:
        await _db.close()
        _db = None


async def init_db() -> aiosqlite.Connection:
    db = await get_db()
    await db.executescript(SCHEMA)
    await db.commit()
    return db


@asynccontextmanager
async def transaction(db: aiosqlite.Connection):
    """Run one write transaction on ``db`` and commit it, or roll back on error.

    Every request shares a single connection, so a commit or rollback issued
    by one handler would otherwise end another handler's open transaction.
    Writers hold a per-connection lock from their first statement until the
    commit. Not reentrant.
    """
    lock = _write_locks.get(db)
    if lock is None:
        lock = _write_locks[db] = asyncio.Lock()
    async with lock:
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        await db.commit()
