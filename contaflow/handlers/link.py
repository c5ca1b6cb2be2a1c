import logging

import aiosqlite
from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from contaflow.db.models import Profile
from contaflow.services.link_service import InvalidLinkCodeError, normalize_code, redeem_link_code
from contaflow.services.profile_service import unlink_profile
from contaflow.telegram import reply

logger = logging.getLogger(__name__)

# /vincular is open to unlinked chats; linked_router only serves linked ones
router = Router()
linked_router = Router()

LINK_REQUIRED_TEXT = (
    "🔗 Você precisa vincular sua conta primeiro!\n\n"
    "1. Acesse o ContaFlow IA\n"
    "2. Clique em 'Conectar Telegram'\n"
    "3. Envie aqui: /vincular SEU\\_CODIGO"
)
INVALID_OR_EXPIRED_TEXT = "❌ Código inválido ou expirado. Gere um novo código no app!"
LINK_ERROR_TEXT = "❌ Erro ao vincular conta. Tente novamente!"


@router.message(Command("vincular"))
async def cmd_vincular(message: Message, db: aiosqlite.Connection):
    parts = message.text.split(maxsplit=1) if message.text else []
    try:
        code = normalize_code(parts[1] if len(parts) > 1 else None)
    except InvalidLinkCodeError as exc:
        await reply(message, str(exc))
        return

    try:
        profile = await redeem_link_code(db, code, message.chat.id)
    except aiosqlite.Error:
        logger.exception("Error linking account", extra={"chat_id": message.chat.id})
        await reply(message, LINK_ERROR_TEXT)
        return

    if profile is None:
        await reply(message, INVALID_OR_EXPIRED_TEXT)
        return

    await reply(
        message,
        f"✅ Conta vinculada com sucesso, {profile.display_name}!\n\n"
        "Agora você pode:\n"
        '• Me contar seus gastos ("gastei 50 no mercado")\n'
        "• Ver seu /saldo\n"
        "• Acompanhar suas /metas\n"
        "• Conversar sobre finanças\n\n"
        "🚀 Vamos conquistar sua liberdade financeira juntos!",
    )


@linked_router.message(F.text == "/desvincular")
async def cmd_desvincular(message: Message, db: aiosqlite.Connection, profile: Profile):
    await unlink_profile(db, profile.user_id)
    logger.info("Telegram chat unlinked", extra={"chat_id": message.chat.id, "user_id": profile.user_id})
    await reply(
        message,
        "🔌 Telegram desconectado da sua conta.\n\nPara conectar de novo, gere um código no app e envie /vincular SEU\\_CODIGO",
    )
