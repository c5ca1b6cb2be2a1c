import argparse
import asyncio
import json
import logging
import sys

import aiosqlite
from aiogram import Dispatcher
from aiogram.types import Message
from aiohttp import web

from contaflow import telegram
from contaflow.config import settings
from contaflow.db.database import close_db, init_db
from contaflow.handlers import common, link, start, summary
from contaflow.logging import setup_logging
from contaflow.services.link_service import create_link_code
from contaflow.services.profile_service import get_profile, get_profile_by_chat_id, unlink_profile
from contaflow.webhook import create_app

setup_logging(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


async def profile_middleware(handler, event: Message, data: dict):
    data["profile"] = await get_profile_by_chat_id(data["db"], event.chat.id)
    return await handler(event, data)


async def require_profile_middleware(handler, event: Message, data: dict):
    if data.get("profile") is None:
        logger.info("Unlinked chat tried a linked-only action", extra={"chat_id": event.chat.id})
        await telegram.reply(event, link.LINK_REQUIRED_TEXT)
        return
    return await handler(event, data)


def build_dispatcher(db: aiosqlite.Connection) -> Dispatcher:
    dp = Dispatcher(db=db)
    dp.message.outer_middleware(profile_middleware)

    for router in (link.linked_router, summary.router, common.router):
        router.message.middleware(require_profile_middleware)

    # order matters: the free-text router catches everything left over
    dp.include_router(start.router)
    dp.include_router(link.router)
    dp.include_router(link.linked_router)
    dp.include_router(summary.router)
    dp.include_router(common.router)
    return dp


async def serve():
    db = await init_db()
    bot = telegram.create_bot()
    dp = build_dispatcher(db)

    runner = web.AppRunner(create_app(bot, dp, db))
    await runner.setup()
    site = web.TCPSite(runner, settings.webhook_host, settings.webhook_port)
    await site.start()
    logger.info(
        "Webhook listening on %s:%d%s",
        settings.webhook_host,
        settings.webhook_port,
        settings.webhook_path,
    )

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down gracefully...")
        await runner.cleanup()
        await bot.session.close()
        await close_db()
        logger.info("Shutdown complete")


async def manage_webhook(action: str) -> dict | bool:
    bot = telegram.create_bot()
    try:
        if action == "set":
            return await telegram.set_webhook(bot)
        if action == "info":
            return await telegram.webhook_info(bot)
        if action == "delete":
            return await telegram.delete_webhook(bot)
        raise ValueError(f"Invalid action {action!r}. Use: set, info, delete")
    finally:
        await bot.session.close()


async def issue_link_code(user_id: str) -> str | None:
    db = await init_db()
    try:
        if await get_profile(db, user_id) is None:
            return None
        link_code = await create_link_code(db, user_id)
        return f"/vincular {link_code.code}  (expira em {link_code.expires_at} UTC)"
    finally:
        await close_db()


async def disconnect(user_id: str) -> bool:
    db = await init_db()
    try:
        return await unlink_profile(db, user_id)
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="contaflow", description="ContaFlow Telegram assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="run the webhook server")

    webhook = sub.add_parser("webhook", help="manage the Telegram webhook registration")
    webhook.add_argument("action", choices=["set", "info", "delete"])

    link_code = sub.add_parser("link-code", help="issue a /vincular code for a profile")
    link_code.add_argument("user_id")

    unlink = sub.add_parser("unlink", help="disconnect a profile from its Telegram chat")
    unlink.add_argument("user_id")
    return parser


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        try:
            asyncio.run(serve())
        except KeyboardInterrupt:
            pass
        return 0

    if args.command == "webhook":
        result = asyncio.run(manage_webhook(args.action))
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 0

    if args.command == "link-code":
        command = asyncio.run(issue_link_code(args.user_id))
        if command is None:
            print(f"Profile {args.user_id} not found", file=sys.stderr)
            return 1
        print(command)
        return 0

    if args.command == "unlink":
        if not asyncio.run(disconnect(args.user_id)):
            print(f"Profile {args.user_id} was not linked", file=sys.stderr)
            return 1
        print(f"Profile {args.user_id} unlinked")
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(run())
