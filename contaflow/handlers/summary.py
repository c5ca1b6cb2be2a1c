import aiosqlite
from aiogram import F, Router
from aiogram.types import Message

from contaflow.currency import format_brl, format_pct
from contaflow.db.models import Goal, Profile
from contaflow.services.summary_service import balance_summary, get_active_goals
from contaflow.telegram import reply

router = Router()

NO_GOALS_TEXT = (
    "🎯 Você ainda não tem metas cadastradas!\n\n"
    "Acesse o ContaFlow IA para criar suas primeiras metas financeiras."
)


def progress_bar(pct: float, width: int = 10) -> str:
    """One cell per ``100 / width`` percent, rounded down and clamped to the bar."""
    filled = max(0, min(int(pct * width // 100), width))
    return "█" * filled + "░" * (width - filled)


def _format_goal(goal: Goal) -> str:
    pct = goal.progress_pct
    return (
        f"*{goal.name}*\n"
        f"{progress_bar(pct)} {format_pct(pct)}\n"
        f"{format_brl(goal.current_amount)} / {format_brl(goal.target_amount)}"
    )


@router.message(F.text == "/saldo")
async def cmd_saldo(message: Message, db: aiosqlite.Connection, profile: Profile):
    summary = await balance_summary(db, profile.user_id)
    await reply(
        message,
        "📊 *Seu Resumo Financeiro*\n\n"
        f"💰 Renda mensal: {format_brl(summary.total_income)}\n"
        f"💳 Dívidas totais: {format_brl(summary.total_debt)}\n"
        f"📅 Parcelas do mês: {format_brl(summary.monthly_debt_payment)}\n"
        f"🎉 Lazer disponível: {format_brl(summary.leisure_remaining)}\n\n"
        "Quer ver mais detalhes? Me pergunte!",
    )


@router.message(F.text == "/metas")
async def cmd_metas(message: Message, db: aiosqlite.Connection, profile: Profile):
    goals = await get_active_goals(db, profile.user_id)
    if not goals:
        await reply(message, NO_GOALS_TEXT)
        return

    text = "🎯 *Suas Metas*\n\n" + "\n\n".join(_format_goal(g) for g in goals)
    await reply(message, text)
