from datetime import date

import aiosqlite

from contaflow.db.database import transaction as write_transaction
from contaflow.db.models import Transaction


async def save_transaction(db: aiosqlite.Connection, transaction: Transaction) -> int:
    async with write_transaction(db):
        cursor = await db.execute(
            "INSERT INTO transactions (user_id, amount, description, type, date) VALUES (?, ?, ?, ?, ?)",
            (
                transaction.user_id,
                transaction.amount,
                transaction.description,
                transaction.type,
                transaction.date.isoformat(),
            ),
        )
    assert cursor.lastrowid is not None
    return cursor.lastrowid


async def record_expense(db: aiosqlite.Connection, user_id: str, amount: float, description: str) -> Transaction:
    """Store an expense dated with the server's current day."""
    transaction = Transaction(
        id=None,
        user_id=user_id,
        amount=amount,
        description=description,
        type="expense",
        date=date.today(),
    )
    transaction.id = await save_transaction(db, transaction)
    return transaction
