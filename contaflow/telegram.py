import logging

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import Message

from contaflow.config import settings

logger = logging.getLogger(__name__)


def create_bot(token: str | None = None) -> Bot:
    return Bot(
        token=token or settings.telegram_bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.MARKDOWN),
    )


async def reply(message: Message, text: str) -> None:
    """Send ``text`` to the message's chat; delivery failures are only logged."""
    try:
        await message.answer(text)
    except TelegramAPIError:
        logger.warning("sendMessage failed", exc_info=True, extra={"chat_id": message.chat.id})


def webhook_url() -> str:
    if not settings.webhook_base_url:
        raise ValueError("WEBHOOK_BASE_URL is not configured")
    return settings.webhook_base_url.rstrip("/") + settings.webhook_path


async def set_webhook(bot: Bot) -> bool:
    url = webhook_url()
    logger.info("Setting webhook to %s", url)
    return await bot.set_webhook(
        url=url,
        secret_token=settings.webhook_secret,
        allowed_updates=["message"],
    )


async def webhook_info(bot: Bot) -> dict:
    info = await bot.get_webhook_info()
    return info.model_dump(mode="json", exclude_none=True)


async def delete_webhook(bot: Bot) -> bool:
    logger.info("Deleting webhook")
    return await bot.delete_webhook()
