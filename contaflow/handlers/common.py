import logging

import aiosqlite
from aiogram import F, Router
from aiogram.types import Message

from contaflow.assistant.client import ask_fin
from contaflow.currency import format_brl
from contaflow.db.models import Profile
from contaflow.expenses import ExpenseIntent, InvalidExpenseError, extract_expense
from contaflow.services.budget_service import add_leisure_spending
from contaflow.services.summary_service import build_user_context
from contaflow.services.transaction_service import record_expense
from contaflow.telegram import reply

logger = logging.getLogger(__name__)
router = Router()

EXPENSE_ERROR_TEXT = "❌ Erro ao registrar despesa. Tente novamente!"
LEISURE_ERROR_TEXT = "⚠️ Não consegui atualizar seu saldo de lazer agora. O gasto ficou registrado."


async def save_expense_intent(message: Message, db: aiosqlite.Connection, profile: Profile, intent: ExpenseIntent):
    log_extra = {"chat_id": message.chat.id, "user_id": profile.user_id}
    try:
        await record_expense(db, profile.user_id, intent.amount, intent.description)
    except aiosqlite.Error:
        logger.exception("Error inserting transaction", extra=log_extra)
        await reply(message, EXPENSE_ERROR_TEXT)
        return

    logger.info("Expense recorded via %s pattern", intent.pattern, extra={**log_extra, "handler": "expense"})
    confirmation = f'✅ Anotado! {format_brl(intent.amount)} em "{intent.description}"'

    # every recorded expense counts against the leisure allowance
    try:
        leisure = await add_leisure_spending(db, profile.user_id, intent.amount)
    except aiosqlite.Error:
        logger.exception("Error updating leisure budget", extra=log_extra)
        await reply(message, f"{confirmation}\n\n{LEISURE_ERROR_TEXT}")
        return

    if leisure is not None:
        await reply(
            message,
            f"{confirmation}\n\n💰 Lazer restante: {format_brl(leisure.remaining)}\n\nQuer que eu analise esse gasto?",
        )
    else:
        await reply(message, f"{confirmation}\n\nQuer que eu analise como está seu mês?")


async def relay_to_assistant(message: Message, db: aiosqlite.Connection, profile: Profile):
    context = await build_user_context(db, profile.user_id)
    answer = await ask_fin(message.text, context, chat_id=message.chat.id)
    await reply(message, answer)


@router.message(F.text)
async def handle_text(message: Message, db: aiosqlite.Connection, profile: Profile):
    try:
        intent = extract_expense(message.text)
    except InvalidExpenseError as exc:
        await reply(message, str(exc))
        return

    if intent is None:
        await relay_to_assistant(message, db, profile)
        return

    await save_expense_intent(message, db, profile, intent)
