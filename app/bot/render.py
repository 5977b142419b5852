"""
Delivery of outbound messages to Telegram.

A message marked edit=True first tries to replace the message the user
pressed a button on. When Telegram refuses the edit (message too old,
deleted, or a reply keyboard is needed) a new message is sent instead.
Both outcomes are normal results of deliver().
"""

import logging
from enum import Enum
from typing import Optional, Union

from telegram import (
    Bot,
    CallbackQuery,
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    WebAppInfo,
)
from telegram.error import BadRequest

from app.core.scheduling.response import Button, OutboundMessage

logger = logging.getLogger(__name__)

ReplyMarkup = Union[InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove]


class Delivery(str, Enum):
    """How a message reached the chat."""

    EDITED = "edited"
    SENT = "sent"


def _inline_button(button: Button) -> InlineKeyboardButton:
    if button.url:
        return InlineKeyboardButton(button.text, url=button.url)
    if button.web_app_url:
        return InlineKeyboardButton(button.text, web_app=WebAppInfo(url=button.web_app_url))
    return InlineKeyboardButton(button.text, callback_data=button.callback_data)


def _keyboard_button(button: Button) -> KeyboardButton:
    if button.web_app_url:
        return KeyboardButton(button.text, web_app=WebAppInfo(url=button.web_app_url))
    return KeyboardButton(button.text)


def inline_markup(message: OutboundMessage) -> Optional[InlineKeyboardMarkup]:
    """Inline keyboard for a message, or None without inline buttons."""
    if not message.inline_buttons:
        return None
    return InlineKeyboardMarkup(
        [[_inline_button(b) for b in row] for row in message.inline_buttons]
    )


def reply_markup(message: OutboundMessage) -> Optional[ReplyMarkup]:
    """Markup for sending a message as a new one."""
    if message.inline_buttons:
        return inline_markup(message)
    if message.reply_buttons:
        return ReplyKeyboardMarkup(
            [[_keyboard_button(b) for b in row] for row in message.reply_buttons],
            resize_keyboard=True,
        )
    if message.remove_reply_keyboard:
        return ReplyKeyboardRemove()
    return None


def can_edit(message: OutboundMessage) -> bool:
    """Edited messages can only carry inline keyboards."""
    return message.edit and not message.reply_buttons and not message.remove_reply_keyboard


async def try_edit(query: Optional[CallbackQuery], message: OutboundMessage) -> bool:
    """Replace the message behind a callback query.

    Returns:
        True if the chat now shows the message text, False if the caller
        has to send a new message instead
    """
    if query is None or query.message is None or not can_edit(message):
        return False

    try:
        await query.edit_message_text(message.text, reply_markup=inline_markup(message))
        return True
    except BadRequest as e:
        if "message is not modified" in str(e).lower():
            return True
        logger.debug(f"Edit refused ({e}), sending a new message")
        return False


async def deliver(
    bot: Bot,
    chat_id: Union[int, str],
    message: OutboundMessage,
    query: Optional[CallbackQuery] = None,
) -> Delivery:
    """Deliver one message: edit in place when asked and possible, else send.

    Args:
        bot: Bot used to send
        chat_id: Target chat
        message: Message to deliver
        query: Callback query the message answers, if any

    Returns:
        Delivery.EDITED or Delivery.SENT
    """
    if message.edit and await try_edit(query, message):
        return Delivery.EDITED

    await bot.send_message(
        chat_id=chat_id,
        text=message.text,
        reply_markup=reply_markup(message),
    )
    return Delivery.SENT
