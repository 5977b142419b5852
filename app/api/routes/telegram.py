"""
Telegram Webhook Endpoint

Used when BOT_MODE=webhook. Telegram POSTs each update here; the update is
queued on the bot application, which processes it like a polled one.
"""

import logging
import hmac
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, status
from telegram import Update

from app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["Telegram"])


@router.post(
    "/webhook",
    summary="Telegram update webhook",
    responses={
        403: {"description": "Secret token mismatch"},
        503: {"description": "Bot not running"},
    },
)
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(None),
) -> dict:
    """Accept one update from Telegram."""
    if settings.webhook_secret and not hmac.compare_digest(
        x_telegram_bot_api_secret_token or "", settings.webhook_secret
    ):
        logger.warning("Webhook call with invalid secret token")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid secret token",
        )

    application = getattr(request.app.state, "bot_application", None)
    if application is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Bot is not running",
        )

    data = await request.json()
    update = Update.de_json(data, application.bot)
    await application.update_queue.put(update)
    return {"ok": True}
