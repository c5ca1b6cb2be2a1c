import os

os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456789:TEST-token-000")

import aiosqlite
import pytest

import contaflow.db.database as db_mod
from contaflow.db.models import Profile
from contaflow.services.profile_service import save_profile


@pytest.fixture(autouse=True)
async def test_db(monkeypatch):
    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.executescript(db_mod.SCHEMA)
    await conn.commit()

    async def _get_db():
        return conn

    monkeypatch.setattr(db_mod, "get_db", _get_db)
    monkeypatch.setattr(db_mod, "_db", conn)

    yield conn

    await conn.close()


@pytest.fixture
async def profile(test_db) -> Profile:
    return await save_profile(test_db, Profile(user_id="user-1", name="Ana", telegram_chat_id="100"))
