"""
Academy Portal — Telegram front desk for sports-academy enrollment.
Entry point: creates the bot, registers routers + middleware, handles graceful shutdown.
"""
import asyncio
import logging
import signal
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.types import ErrorEvent
from sqlalchemy.exc import SQLAlchemyError

from portal.config import settings
from portal.enrollment import WizardRegistry
from portal.middlewares import DatabaseMiddleware, RateLimitMiddleware
from portal.models.base import AsyncSessionFactory, Base, engine
from portal.services import seed_default_programs

# ── Handlers ──────────────────────────────────────────────────────────────────
from portal.handlers.common import router as common_router
from portal.handlers.enrollment import router as enrollment_router
from portal.handlers.account import router as account_router
from portal.handlers.fallback import router as fallback_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables on startup and seed the catalog if empty."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        if settings.SEED_DEFAULT_PROGRAMS:
            async with AsyncSessionFactory() as session:
                await seed_default_programs(session)
                await session.commit()
        logger.info("Database tables ready.")
    except (SQLAlchemyError, OSError) as e:
        logger.critical(
            "❌ Cannot connect to database!\n"
            "   URL: %s\n"
            "   Error: %s\n\n"
            "   → Locally: start PostgreSQL or use SQLite "
            "(DATABASE_URL=sqlite+aiosqlite:///./academy.db)",
            settings.DATABASE_URL.split("@")[-1],   # hide credentials in log
            e,
        )
        sys.exit(1)


def build_dispatcher(registry: WizardRegistry = None) -> Dispatcher:
    dp = Dispatcher(storage=MemoryStorage())

    # Handed to every handler as the ``wizards`` argument
    dp["wizards"] = registry or WizardRegistry(settings.pricing)

    # ── Global error handler: callbacks are always answered ───────────────────
    @dp.errors()
    async def handle_error(event: ErrorEvent) -> None:
        logger.exception("Unhandled error: %s", event.exception)
        update = event.update
        if update.callback_query:
            try:
                await update.callback_query.answer(
                    "⚠️ Something went wrong. Please try again.", show_alert=True
                )
            except TelegramAPIError:
                pass

    # ── Global middlewares ────────────────────────────────────────────────────
    dp.update.middleware(RateLimitMiddleware(settings.RATE_LIMIT, settings.RATE_LIMIT_PERIOD))
    dp.update.middleware(DatabaseMiddleware())

    # ── Routers: order sets handler priority ──────────────────────────────────
    dp.include_router(common_router)
    dp.include_router(enrollment_router)
    dp.include_router(account_router)

    # !! Must be last: catches any callback not handled above !!
    dp.include_router(fallback_router)

    return dp


async def main() -> None:
    logger.info("Starting Academy Portal bot…")
    await create_tables()

    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = build_dispatcher()

    # ── Graceful shutdown on SIGTERM (Docker) ─────────────────────────────────
    loop = asyncio.get_running_loop()

    def _handle_signal():
        logger.info("Received shutdown signal, stopping…")
        asyncio.ensure_future(dp.stop_polling())

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _handle_signal)
        except NotImplementedError:
            # Windows does not support add_signal_handler
            pass

    try:
        logger.info("Bot is running. Press Ctrl+C to stop.")
        await dp.start_polling(
            bot,
            allowed_updates=dp.resolve_used_update_types(),
            handle_signals=False,
        )
    finally:
        logger.info("Shutting down…")
        await bot.session.close()
        await engine.dispose()
        logger.info("Shutdown complete.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
