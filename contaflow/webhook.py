import logging
import time
import uuid

import aiosqlite
from aiogram import Bot, Dispatcher
from aiogram.types import Update
from aiohttp import web

from contaflow.assistant.client import is_configured
from contaflow.config import settings

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

BOT_KEY = web.AppKey("bot", Bot)
DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
DB_KEY = web.AppKey("db", aiosqlite.Connection)


def normalize_update(payload) -> tuple[int, str] | None:
    """Return ``(chat_id, text)`` for text messages, None for anything else.

    The trimmed text is written back into ``payload`` so command filters see
    the same string.
    """
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    text = message.get("text")
    chat = message.get("chat")
    if not isinstance(text, str) or not isinstance(chat, dict) or chat.get("id") is None:
        return None
    text = text.strip()
    if not text:
        return None
    message["text"] = text
    return chat["id"], text


async def handle_webhook(request: web.Request) -> web.Response:
    if settings.webhook_secret and request.headers.get(SECRET_HEADER) != settings.webhook_secret:
        logger.warning("Rejected update with wrong secret token")
        return web.json_response({"ok": False}, status=401)

    started = time.monotonic()
    try:
        payload = await request.json()
        logger.debug("Telegram update received: %s", payload)
        normalized = normalize_update(payload)
        if normalized is None:
            return web.json_response({"ok": True})

        chat_id, _ = normalized
        bot = request.app[BOT_KEY]
        update = Update.model_validate(payload, context={"bot": bot})
        await request.app[DISPATCHER_KEY].feed_update(bot, update)
    except Exception:
        error_id = str(uuid.uuid4())
        logger.error("Telegram webhook error [%s]", error_id, exc_info=True, extra={"error_id": error_id})
        return web.json_response({"error": "An error occurred", "error_id": error_id}, status=500)

    latency_ms = round((time.monotonic() - started) * 1000, 1)
    logger.info("Update handled", extra={"chat_id": chat_id, "latency_ms": latency_ms})
    return web.json_response({"ok": True})


async def handle_health(request: web.Request) -> web.Response:
    checks: dict[str, str] = {}
    try:
        await request.app[DB_KEY].execute("SELECT 1")
        checks["db"] = "ok"
    except Exception as e:
        checks["db"] = f"error: {e}"
    checks["assistant"] = "configured" if is_configured() else "not configured"
    healthy = checks["db"] == "ok"
    return web.json_response(
        {"status": "healthy" if healthy else "unhealthy", "checks": checks},
        status=200 if healthy else 503,
    )


def create_app(bot: Bot, dispatcher: Dispatcher, db: aiosqlite.Connection) -> web.Application:
    app = web.Application()
    app[BOT_KEY] = bot
    app[DISPATCHER_KEY] = dispatcher
    app[DB_KEY] = db
    app.router.add_post(settings.webhook_path, handle_webhook)
    app.router.add_get("/health", handle_health)
    return app
