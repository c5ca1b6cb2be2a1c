import asyncio
from dataclasses import dataclass

import aiosqlite

from contaflow.currency import format_brl, format_pct
from contaflow.db.models import Debt, Goal, IncomeSource, LeisureBudget, Profile
from contaflow.services.budget_service import get_leisure_budget
from contaflow.services.profile_service import get_profile


@dataclass(slots=True)
class BalanceSummary:
    total_income: float
    total_debt: float
    monthly_debt_payment: float
    leisure_remaining: float


async def get_income_sources(db: aiosqlite.Connection, user_id: str) -> list[IncomeSource]:
    cursor = await db.execute(
        "SELECT id, user_id, name, amount FROM income_sources WHERE user_id = ? ORDER BY id",
        (user_id,),
    )
    rows = await cursor.fetchall()
    return [IncomeSource(**dict(row)) for row in rows]


async def get_unpaid_debts(db: aiosqlite.Connection, user_id: str) -> list[Debt]:
    cursor = await db.execute(
        """SELECT id, user_id, name, remaining_amount, monthly_payment, is_paid
        FROM debts WHERE user_id = ? AND is_paid = 0 ORDER BY id""",
        (user_id,),
    )
    rows = await cursor.fetchall()
    return [Debt(**{**dict(row), "is_paid": bool(row["is_paid"])}) for row in rows]


async def get_active_goals(db: aiosqlite.Connection, user_id: str) -> list[Goal]:
    """Unachieved goals, newest first."""
    cursor = await db.execute(
        """SELECT id, user_id, name, target_amount, current_amount, is_achieved
        FROM goals WHERE user_id = ? AND is_achieved = 0
        ORDER BY created_at DESC, id DESC""",
        (user_id,),
    )
    rows = await cursor.fetchall()
    return [Goal(**{**dict(row), "is_achieved": bool(row["is_achieved"])}) for row in rows]


def _leisure_remaining(leisure: LeisureBudget | None) -> float:
    return leisure.remaining if leisure else 0.0


async def balance_summary(db: aiosqlite.Connection, user_id: str) -> BalanceSummary:
    incomes, debts, leisure = await asyncio.gather(
        get_income_sources(db, user_id),
        get_unpaid_debts(db, user_id),
        get_leisure_budget(db, user_id),
    )
    return BalanceSummary(
        total_income=sum(i.amount for i in incomes),
        total_debt=sum(d.remaining_amount for d in debts),
        monthly_debt_payment=sum(d.monthly_payment or 0 for d in debts),
        leisure_remaining=_leisure_remaining(leisure),
    )


def render_user_context(
    profile: Profile | None,
    incomes: list[IncomeSource],
    debts: list[Debt],
    goals: list[Goal],
    leisure: LeisureBudget | None,
) -> str:
    name = profile.name if profile and profile.name else "Não informado"
    total_income = sum(i.amount for i in incomes)
    total_debt = sum(d.remaining_amount for d in debts)
    debts_text = ", ".join(f"{d.name} ({format_brl(d.remaining_amount)})" for d in debts) or "Nenhuma"
    goals_text = ", ".join(f"{g.name} ({format_pct(g.progress_pct)})" for g in goals) or "Nenhuma"
    return "\n".join(
        [
            f"Nome: {name}",
            f"Renda mensal: {format_brl(total_income)}",
            f"Total de dívidas: {format_brl(total_debt)}",
            f"Dívidas ativas: {debts_text}",
            f"Metas ativas: {goals_text}",
            f"Lazer disponível: {format_brl(_leisure_remaining(leisure))}",
        ]
    )


async def build_user_context(db: aiosqlite.Connection, user_id: str) -> str:
    """Financial digest injected into the assistant's system prompt.

    Reads are issued together and are not a consistent snapshot.
    """
    profile, debts, goals, leisure, incomes = await asyncio.gather(
        get_profile(db, user_id),
        get_unpaid_debts(db, user_id),
        get_active_goals(db, user_id),
        get_leisure_budget(db, user_id),
        get_income_sources(db, user_id),
    )
    return render_user_context(profile, incomes, debts, goals, leisure)
