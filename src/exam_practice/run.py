import asyncio
import logging
from aiogram import Bot, Dispatcher
from .config import load_settings
from .db import ensure_sqlite_dir, ensure_sqlite_schema, make_engine, make_sessionmaker
from .exam import load_exam
from .handlers import register_handlers

async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()
    exam = await load_exam(settings.exam_source, timeout=settings.exam_load_timeout_s)
    if exam is None:
        logging.getLogger(__name__).warning("no_exam_loaded source=%s", settings.exam_source)

    bot = Bot(settings.bot_token)
    engine = make_engine(settings)
    try:
        if settings.database_url.startswith("sqlite"):
            ensure_sqlite_dir(settings.database_url)
            await ensure_sqlite_schema(engine)
        sessionmaker = make_sessionmaker(engine)

        dp = Dispatcher()
        register_handlers(dp, settings=settings, sessionmaker=sessionmaker, exam=exam)

        await dp.start_polling(bot)
    except Exception:
        logging.getLogger(__name__).exception("bot_run_failed")
        raise
    finally:
        await bot.session.close()
        await engine.dispose()

def cli() -> None:
    asyncio.run(main())

if __name__ == "__main__":
    cli()
