"""
Telegram update handlers.

Each handler decodes the update into an event, passes it to the booking
dispatcher and delivers the resulting messages. No booking logic lives here.
"""

import logging
from typing import Optional

from telegram import CallbackQuery, Update, User
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from app.core.i18n import detect_locale, translate
from app.core.scheduling import (
    BookingDispatcher,
    InboundContext,
    OutboundMessage,
    decode_action,
    decode_command,
    decode_web_app_data,
    get_booking_dispatcher,
)
from app.core.scheduling.events import Event
from app.bot.render import deliver

logger = logging.getLogger(__name__)

DISPATCHER_KEY = "dispatcher"


def _display_name(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    if user.username:
        return f"@{user.username}"
    return user.full_name or None


def _get_dispatcher(context: ContextTypes.DEFAULT_TYPE) -> BookingDispatcher:
    dispatcher = context.bot_data.get(DISPATCHER_KEY)
    if dispatcher is None:
        dispatcher = get_booking_dispatcher()
        context.bot_data[DISPATCHER_KEY] = dispatcher
    return dispatcher


async def _dispatch(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    event: Event,
    query: Optional[CallbackQuery] = None,
) -> None:
    """Run an event through the dispatcher and deliver its messages."""
    chat = update.effective_chat
    user = update.effective_user
    bot = context.bot

    async def progress(message: OutboundMessage) -> None:
        try:
            await deliver(bot, chat.id, message, query)
        except TelegramError as e:
            logger.warning(f"Progress message to chat {chat.id} failed: {e}")

    inbound = InboundContext(
        chat_id=str(chat.id),
        chat_kind=chat.type,
        language_hint=user.language_code if user else None,
        user_display=_display_name(user),
        bot_username=bot.username,
        progress=progress,
    )

    result = await _get_dispatcher(context).handle(inbound, event)
    for message in result.messages:
        await deliver(bot, chat.id, message, query)


async def on_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start, /book, /my, /lang and /help."""
    message = update.effective_message
    if message is None or not message.text:
        return
    name = message.text.split(maxsplit=1)[0]
    event = decode_command(name, context.args or [])
    await _dispatch(update, context, event)


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle every inline button press."""
    query = update.callback_query
    await query.answer()
    await _dispatch(update, context, decode_action(query.data), query=query)


async def on_web_app_data(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the payload sent back by the calendar web app."""
    message = update.effective_message
    raw = message.web_app_data.data if message and message.web_app_data else ""
    await _dispatch(update, context, decode_web_app_data(raw))


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log unexpected handler errors and tell the user something went wrong."""
    logger.error(f"Update {update} caused error: {context.error}", exc_info=context.error)

    if not isinstance(update, Update) or update.effective_chat is None:
        return

    user = update.effective_user
    lang = detect_locale(user.language_code if user else None)
    try:
        await context.bot.send_message(
            chat_id=update.effective_chat.id,
            text=translate(lang, "errors.generic"),
        )
    except TelegramError as e:
        logger.warning(f"Could not report error to chat {update.effective_chat.id}: {e}")
