import aiosqlite

from contaflow.db.database import transaction
from contaflow.db.models import Profile

_PROFILE_COLUMNS = "user_id, name, telegram_chat_id"


def _to_profile(row) -> Profile:
    return Profile(user_id=row["user_id"], name=row["name"], telegram_chat_id=row["telegram_chat_id"])


async def get_profile(db: aiosqlite.Connection, user_id: str) -> Profile | None:
    cursor = await db.execute(f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE user_id = ?", (user_id,))
    row = await cursor.fetchone()
    return _to_profile(row) if row else None


async def get_profile_by_chat_id(db: aiosqlite.Connection, chat_id: int | str) -> Profile | None:
    cursor = await db.execute(
        f"SELECT {_PROFILE_COLUMNS} FROM profiles WHERE telegram_chat_id = ?",
        (str(chat_id),),
    )
    row = await cursor.fetchone()
    return _to_profile(row) if row else None


async def save_profile(db: aiosqlite.Connection, profile: Profile) -> Profile:
    async with transaction(db):
        await db.execute(
            """INSERT INTO profiles (user_id, name, telegram_chat_id) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET name = excluded.name""",
            (profile.user_id, profile.name, profile.telegram_chat_id),
        )
    return profile


async def unlink_profile(db: aiosqlite.Connection, user_id: str) -> bool:
    async with transaction(db):
        cursor = await db.execute(
            "UPDATE profiles SET telegram_chat_id = NULL WHERE user_id = ? AND telegram_chat_id IS NOT NULL",
            (user_id,),
        )
    return cursor.rowcount > 0
