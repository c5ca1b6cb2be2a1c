from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import pytest
from aiogram.exceptions import TelegramNetworkError

from contaflow.db.database import format_timestamp
from contaflow.db.models import Profile
from contaflow.handlers.common import EXPENSE_ERROR_TEXT, LEISURE_ERROR_TEXT, handle_text
from contaflow.handlers.link import INVALID_OR_EXPIRED_TEXT, LINK_ERROR_TEXT, cmd_desvincular, cmd_vincular
from contaflow.handlers.start import cmd_start
from contaflow.handlers.summary import NO_GOALS_TEXT, cmd_metas, cmd_saldo, progress_bar
from contaflow.services.budget_service import get_leisure_budget, set_leisure_budget
from contaflow.services.profile_service import get_profile, get_profile_by_chat_id, save_profile


def _make_message(text, chat_id=100):
    msg = AsyncMock()
    msg.text = text
    msg.chat = MagicMock(id=chat_id)
    msg.answer = AsyncMock()
    return msg


def _answer(msg) -> str:
    msg.answer.assert_called_once()
    return msg.answer.call_args.args[0]


async def _transactions(db, user_id) -> list[dict]:
    cursor = await db.execute("SELECT * FROM transactions WHERE user_id = ? ORDER BY id", (user_id,))
    return [dict(row) for row in await cursor.fetchall()]


# --- /start ---


async def test_start_unlinked():
    msg = _make_message("/start")
    await cmd_start(msg, profile=None)
    assert "/vincular" in _answer(msg)


async def test_start_linked(profile):
    msg = _make_message("/start")
    await cmd_start(msg, profile=profile)
    text = _answer(msg)
    assert "Olá, Ana" in text
    assert "/saldo" in text


async def test_reply_failure_is_swallowed():
    msg = _make_message("/start")
    msg.answer.side_effect = TelegramNetworkError(method=MagicMock(), message="down")
    await cmd_start(msg, profile=None)


# --- /vincular ---


async def test_vincular_short_code_skips_datastore():
    db = AsyncMock()
    msg = _make_message("/vincular abc")
    await cmd_vincular(msg, db=db)
    assert "Código inválido" in _answer(msg)
    db.execute.assert_not_called()


async def test_vincular_without_code():
    db = AsyncMock()
    msg = _make_message("/vincular")
    await cmd_vincular(msg, db=db)
    assert "Código inválido" in _answer(msg)
    db.execute.assert_not_called()


async def test_vincular_unknown_code(test_db):
    await save_profile(test_db, Profile(user_id="user-2", name="Bruno"))
    msg = _make_message("/vincular ABC123", chat_id=555)
    await cmd_vincular(msg, db=test_db)
    assert _answer(msg) == INVALID_OR_EXPIRED_TEXT
    assert (await get_profile(test_db, "user-2")).telegram_chat_id is None


async def test_vincular_success_lowercase_code(test_db):
    await save_profile(test_db, Profile(user_id="user-2", name="Bruno"))
    expires = format_timestamp(datetime.now(UTC) + timedelta(minutes=15))
    await test_db.execute(
        "INSERT INTO telegram_link_codes (user_id, code, expires_at) VALUES ('user-2', 'ABC123', ?)",
        (expires,),
    )
    await test_db.commit()

    msg = _make_message("/vincular abc123", chat_id=555)
    await cmd_vincular(msg, db=test_db)
    assert "vinculada com sucesso, Bruno" in _answer(msg)
    assert (await get_profile_by_chat_id(test_db, 555)).user_id == "user-2"


async def test_vincular_datastore_error():
    msg = _make_message("/vincular ABC123")
    with patch("contaflow.handlers.link.redeem_link_code", side_effect=aiosqlite.OperationalError("locked")):
        await cmd_vincular(msg, db=AsyncMock())
    assert _answer(msg) == LINK_ERROR_TEXT


async def test_desvincular(test_db, profile):
    msg = _make_message("/desvincular")
    await cmd_desvincular(msg, db=test_db, profile=profile)
    assert "desconectado" in _answer(msg)
    assert await get_profile_by_chat_id(test_db, 100) is None


# --- /saldo and /metas ---


async def test_saldo(test_db, profile):
    await test_db.execute("INSERT INTO income_sources (user_id, name, amount) VALUES ('user-1', 'Salário', 3000)")
    await test_db.execute(
        "INSERT INTO debts (user_id, name, remaining_amount, monthly_payment) VALUES ('user-1', 'Cartão', 900, 150)"
    )
    await test_db.commit()
    await set_leisure_budget(test_db, "user-1", 400.0, 100.0)

    msg = _make_message("/saldo")
    await cmd_saldo(msg, db=test_db, profile=profile)
    text = _answer(msg)
    assert "Renda mensal: R$ 3000.00" in text
    assert "Dívidas totais: R$ 900.00" in text
    assert "Parcelas do mês: R$ 150.00" in text
    assert "Lazer disponível: R$ 300.00" in text


async def test_metas_without_goals(test_db, profile):
    msg = _make_message("/metas")
    await cmd_metas(msg, db=test_db, profile=profile)
    assert _answer(msg) == NO_GOALS_TEXT


async def test_metas_lists_goals(test_db, profile):
    await test_db.execute(
        "INSERT INTO goals (user_id, name, target_amount, current_amount) VALUES ('user-1', 'Viagem', 1000, 550)"
    )
    await test_db.commit()

    msg = _make_message("/metas")
    await cmd_metas(msg, db=test_db, profile=profile)
    text = _answer(msg)
    assert "*Viagem*" in text
    assert "█████░░░░░ 55%" in text
    assert "R$ 550.00 / R$ 1000.00" in text


@pytest.mark.parametrize(
    "pct,filled",
    [(100, 10), (0, 0), (55, 5), (99.9, 9), (10, 1), (150, 10), (-20, 0)],
)
def test_progress_bar(pct, filled):
    bar = progress_bar(pct)
    assert len(bar) == 10
    assert bar.count("█") == filled
    assert bar.count("░") == 10 - filled


# --- free text ---


async def test_expense_updates_leisure_budget(test_db, profile):
    await set_leisure_budget(test_db, "user-1", 500.0, 100.0)

    msg = _make_message("gastei 45,50 no mercado")
    with patch("contaflow.handlers.common.ask_fin", new_callable=AsyncMock) as mock_fin:
        await handle_text(msg, db=test_db, profile=profile)
    mock_fin.assert_not_called()

    text = _answer(msg)
    assert 'R$ 45.50 em "mercado"' in text
    assert "Lazer restante: R$ 354.50" in text

    transactions = await _transactions(test_db, "user-1")
    assert len(transactions) == 1
    assert transactions[0]["amount"] == 45.5
    assert transactions[0]["description"] == "mercado"
    assert transactions[0]["type"] == "expense"
    assert transactions[0]["date"] == date.today().isoformat()
    assert (await get_leisure_budget(test_db, "user-1")).spent_this_month == 145.5


async def test_expense_without_leisure_budget(test_db, profile):
    msg = _make_message("paguei 100 de luz")
    await handle_text(msg, db=test_db, profile=profile)
    text = _answer(msg)
    assert 'R$ 100.00 em "luz"' in text
    assert "Lazer" not in text
    assert len(await _transactions(test_db, "user-1")) == 1


async def test_invalid_amount_creates_nothing(test_db, profile):
    msg = _make_message("gastei 5000000 no carro")
    with patch("contaflow.handlers.common.ask_fin", new_callable=AsyncMock) as mock_fin:
        await handle_text(msg, db=test_db, profile=profile)
    assert "Valor inválido" in _answer(msg)
    mock_fin.assert_not_called()
    assert await _transactions(test_db, "user-1") == []


async def test_expense_insert_failure(test_db, profile):
    msg = _make_message("gastei 20 no bar")
    with patch("contaflow.handlers.common.record_expense", side_effect=aiosqlite.OperationalError("disk full")):
        await handle_text(msg, db=test_db, profile=profile)
    assert _answer(msg) == EXPENSE_ERROR_TEXT


async def test_unmatched_text_goes_to_assistant(test_db, profile):
    msg = _make_message("como posso economizar?")
    with patch("contaflow.handlers.common.ask_fin", new_callable=AsyncMock, return_value="Dica!") as mock_fin:
        await handle_text(msg, db=test_db, profile=profile)

    assert _answer(msg) == "Dica!"
    prompt, context = mock_fin.call_args.args
    assert prompt == "como posso economizar?"
    assert "Nome: Ana" in context
    assert mock_fin.call_args.kwargs["chat_id"] == 100


async def test_expense_saved_when_leisure_update_fails(test_db, profile):
    await set_leisure_budget(test_db, "user-1", 500.0)

    msg = _make_message("gastei 20 no bar")
    with patch("contaflow.handlers.common.add_leisure_spending", side_effect=aiosqlite.OperationalError("locked")):
        await handle_text(msg, db=test_db, profile=profile)

    text = _answer(msg)
    assert 'R$ 20.00 em "bar"' in text
    assert LEISURE_ERROR_TEXT in text
    assert "Quer que eu analise" not in text
    assert len(await _transactions(test_db, "user-1")) == 1
