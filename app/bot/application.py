"""
Telegram Application Setup

Builds the python-telegram-bot Application and runs it inside the FastAPI
process, either with long polling or behind the /telegram/webhook route.
"""

import logging
from typing import Optional

from telegram import BotCommand, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from app.config import settings
from app.core.scheduling import BookingDispatcher
from app.infra.notifications import NotificationService, TelegramChannel, get_notification_service
from app.bot.handlers import (
    DISPATCHER_KEY,
    on_callback,
    on_command,
    on_error,
    on_web_app_data,
)
from app.bot.processor import ChatOrderedUpdateProcessor

logger = logging.getLogger(__name__)

COMMANDS = ["start", "book", "my", "lang", "help"]

WEBHOOK_PATH = "/telegram/webhook"


def register_handlers(application: Application) -> None:
    """Attach the booking handlers to an application."""
    application.add_handler(CommandHandler(COMMANDS, on_command))
    application.add_handler(CallbackQueryHandler(on_callback))
    application.add_handler(MessageHandler(filters.StatusUpdate.WEB_APP_DATA, on_web_app_data))
    application.add_error_handler(on_error)


def build_application(
    token: Optional[str] = None,
    dispatcher: Optional[BookingDispatcher] = None,
) -> Application:
    """Build the bot application.

    Args:
        token: Bot token (default: telegram_bot_token)
        dispatcher: Booking dispatcher (uses singleton if not provided)

    Returns:
        Configured, not yet initialized Application
    """
    builder = (
        Application.builder()
        .token(token or settings.telegram_bot_token)
        .concurrent_updates(ChatOrderedUpdateProcessor())
    )
    if settings.bot_mode == "webhook":
        # Updates arrive through the FastAPI route
        builder = builder.updater(None)

    application = builder.build()
    if dispatcher is not None:
        application.bot_data[DISPATCHER_KEY] = dispatcher
    register_handlers(application)
    return application


def build_channels(application: Application) -> list[TelegramChannel]:
    """Operator notification channels from admin_chat_ids."""
    return [TelegramChannel(application.bot, chat_id) for chat_id in settings.admin_chat_ids_list]


async def start_bot(
    application: Application,
    notifier: Optional[NotificationService] = None,
) -> None:
    """Initialize the bot and start receiving updates."""
    await application.initialize()

    notifier = notifier or get_notification_service()
    notifier.set_channels(build_channels(application))

    await application.bot.set_my_commands([
        BotCommand("book", "Book an appointment"),
        BotCommand("my", "My appointments"),
        BotCommand("lang", "Language"),
        BotCommand("help", "Help"),
    ])

    if settings.bot_mode == "webhook":
        url = f"{settings.public_base_url.rstrip('/')}{WEBHOOK_PATH}"
        await application.bot.set_webhook(
            url=url,
            secret_token=settings.webhook_secret or None,
            allowed_updates=Update.ALL_TYPES,
        )
        await application.start()
        logger.info(f"Telegram bot @{application.bot.username} receiving updates via webhook {url}")
    else:
        await application.start()
        await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info(f"Telegram bot @{application.bot.username} polling for updates")


async def stop_bot(application: Application) -> None:
    """Stop receiving updates and release bot resources."""
    if application.updater is not None and application.updater.running:
        await application.updater.stop()
    if application.running:
        await application.stop()
    await application.shutdown()
    logger.info("Telegram bot stopped")
