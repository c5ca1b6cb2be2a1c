import aiosqlite

from contaflow.db.database import transaction
from contaflow.db.models import LeisureBudget


def _to_budget(row) -> LeisureBudget:
    return LeisureBudget(
        id=row["id"],
        user_id=row["user_id"],
        monthly_amount=float(row["monthly_amount"]),
        spent_this_month=float(row["spent_this_month"] or 0),
    )


async def get_leisure_budget(db: aiosqlite.Connection, user_id: str) -> LeisureBudget | None:
    cursor = await db.execute(
        "SELECT id, user_id, monthly_amount, spent_this_month FROM leisure_budget WHERE user_id = ?",
        (user_id,),
    )
    row = await cursor.fetchone()
    return _to_budget(row) if row else None


async def set_leisure_budget(
    db: aiosqlite.Connection,
    user_id: str,
    monthly_amount: float,
    spent_this_month: float = 0.0,
) -> LeisureBudget:
    async with transaction(db):
        await db.execute(
            """INSERT INTO leisure_budget (user_id, monthly_amount, spent_this_month) VALUES (?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                monthly_amount = excluded.monthly_amount,
                spent_this_month = excluded.spent_this_month""",
            (user_id, monthly_amount, spent_this_month),
        )
    budget = await get_leisure_budget(db, user_id)
    assert budget is not None
    return budget


async def add_leisure_spending(db: aiosqlite.Connection, user_id: str, amount: float) -> LeisureBudget | None:
    """Add ``amount`` to this month's leisure spending.

    The increment is done in SQL so concurrent expenses never overwrite each
    other. Returns the updated budget, or None if the user has none.
    """
    async with transaction(db):
        cursor = await db.execute(
            "UPDATE leisure_budget SET spent_this_month = COALESCE(spent_this_month, 0) + ? WHERE user_id = ?",
            (amount, user_id),
        )
    if cursor.rowcount == 0:
        return None
    return await get_leisure_budget(db, user_id)
