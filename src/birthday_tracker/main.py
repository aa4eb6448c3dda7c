from __future__ import annotations

import logging

from telegram.ext import Application

from birthday_tracker.bot_handlers import HandlerDependencies, build_handlers
from birthday_tracker.remote_store import SupabaseStore
from birthday_tracker.settings import Settings, load_settings
from birthday_tracker.sync import BirthdayBook

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO, including the Telegram polling calls.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_store(settings: Settings) -> SupabaseStore | None:
    if not settings.remote_enabled:
        LOGGER.warning("SUPABASE_URL/SUPABASE_KEY not set; birthdays are kept locally only")
        return None
    return SupabaseStore(
        base_url=settings.supabase_url,
        api_key=settings.supabase_key,
        table=settings.supabase_table,
        timeout=settings.remote_timeout_seconds,
    )


async def load_birthdays(application: Application) -> None:
    book: BirthdayBook = application.bot_data["handler_deps"].book
    records = await book.load()
    LOGGER.info("Tracking %s birthdays (%s)", len(records), book.status)


async def close_store(application: Application) -> None:
    store: SupabaseStore | None = application.bot_data.get("remote_store")
    if store is not None:
        await store.aclose()


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    if settings.cache_path is not None:
        settings.cache_path.parent.mkdir(parents=True, exist_ok=True)

    store = build_store(settings)
    book = BirthdayBook(
        cache_path=settings.cache_path,
        store=store,
        leap_day_rule=settings.leap_day_rule,
    )

    application = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .post_init(load_birthdays)
        .post_shutdown(close_store)
        .build()
    )
    application.bot_data["settings"] = settings
    application.bot_data["remote_store"] = store
    application.bot_data["handler_deps"] = HandlerDependencies(settings=settings, book=book)

    for handler in build_handlers():
        application.add_handler(handler)

    application.run_polling()


if __name__ == "__main__":
    main()
