import logging
import secrets
import string
from datetime import UTC, datetime, timedelta

import aiosqlite

from contaflow.config import settings
from contaflow.db.database import format_timestamp, transaction
from contaflow.db.models import LinkCode, Profile
from contaflow.services.profile_service import get_profile

logger = logging.getLogger(__name__)

MIN_CODE_LENGTH = 6
CODE_ALPHABET = string.digits + string.ascii_uppercase


class InvalidLinkCodeError(ValueError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__("❌ Código inválido. Use: /vincular SEU\\_CODIGO")


def normalize_code(raw: str | None) -> str:
    code = (raw or "").strip().upper()
    if len(code) < MIN_CODE_LENGTH:
        raise InvalidLinkCodeError(code)
    return code


def generate_code(length: int | None = None) -> str:
    length = length or settings.link_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def create_link_code(db: aiosqlite.Connection, user_id: str, now: datetime | None = None) -> LinkCode:
    """Mint a fresh code for ``user_id``, discarding any unused ones first."""
    now = now or datetime.now(UTC)
    expires_at = format_timestamp(now + timedelta(minutes=settings.link_code_ttl_minutes))
    code = generate_code()

    async with transaction(db):
        await db.execute("DELETE FROM telegram_link_codes WHERE user_id = ? AND used = 0", (user_id,))
        cursor = await db.execute(
            "INSERT INTO telegram_link_codes (user_id, code, expires_at) VALUES (?, ?, ?)",
            (user_id, code, expires_at),
        )
    logger.info("Link code issued", extra={"user_id": user_id})
    return LinkCode(id=cursor.lastrowid, user_id=user_id, code=code, expires_at=expires_at)


async def redeem_link_code(
    db: aiosqlite.Connection,
    code: str,
    chat_id: int | str,
    now: datetime | None = None,
) -> Profile | None:
    """Bind ``chat_id`` to the owner of ``code``.

    The code is claimed with a conditional update (``used = 0`` in the WHERE
    clause) so two concurrent redemptions cannot both succeed. Claiming the
    code and writing the chat id happen in one transaction that no other
    writer on the connection can commit or roll back halfway.

    Returns the linked profile, or None when the code is unknown, already
    used or expired. Datastore errors roll back and propagate.
    """
    now_ts = format_timestamp(now or datetime.now(UTC))
    chat_id = str(chat_id)

    async with transaction(db):
        cursor = await db.execute(
            """SELECT id, user_id FROM telegram_link_codes
            WHERE code = ? AND used = 0 AND expires_at > ?
            ORDER BY id DESC LIMIT 1""",
            (code, now_ts),
        )
        row = await cursor.fetchone()
        if not row:
            return None

        cursor = await db.execute(
            "UPDATE telegram_link_codes SET used = 1 WHERE id = ? AND used = 0 AND expires_at > ?",
            (row["id"], now_ts),
        )
        if cursor.rowcount != 1:
            await db.rollback()
            logger.info("Link code claimed concurrently", extra={"user_id": row["user_id"]})
            return None

        # one profile per chat: release the chat from whoever held it before
        await db.execute(
            "UPDATE profiles SET telegram_chat_id = NULL WHERE telegram_chat_id = ? AND user_id != ?",
            (chat_id, row["user_id"]),
        )
        cursor = await db.execute(
            "UPDATE profiles SET telegram_chat_id = ? WHERE user_id = ?",
            (chat_id, row["user_id"]),
        )
        if cursor.rowcount != 1:
            await db.rollback()
            logger.warning("Link code points at missing profile", extra={"user_id": row["user_id"]})
            return None

    logger.info("Telegram chat linked", extra={"user_id": row["user_id"], "chat_id": chat_id})
    return await get_profile(db, row["user_id"])
