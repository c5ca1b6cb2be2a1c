from aiogram import F, Router
from aiogram.types import Message

from contaflow.db.models import Profile
from contaflow.telegram import reply

router = Router()


@router.message(F.text == "/start")
async def cmd_start(message: Message, profile: Profile | None = None):
    if profile:
        text = (
            f"👋 Olá, {profile.display_name}! Sou o FIN, seu assistente financeiro.\n\n"
            "Você já está conectado! Use:\n"
            "• /saldo - Ver resumo financeiro\n"
            "• /metas - Ver suas metas\n"
            "• Ou simplesmente me conte o que gastou!\n\n"
            'Exemplo: "gastei 50 no mercado"'
        )
    else:
        text = (
            "👋 Olá! Sou o FIN, seu assistente financeiro inteligente.\n\n"
            "Para usar todas as funcionalidades, você precisa vincular sua conta do ContaFlow IA.\n\n"
            '📱 Acesse o app e clique em "Conectar Telegram" para obter seu código de vinculação.\n\n'
            "Depois, envie:\n"
            "/vincular SEU\\_CODIGO"
        )
    await reply(message, text)
