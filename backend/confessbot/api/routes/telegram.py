"""Telegram webhook endpoint."""
import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, status
from pydantic import ValidationError

from confessbot.api.deps import get_event_router, get_webhook_secret
from confessbot.schemas.status import WebhookAck
from confessbot.schemas.telegram import InboundEvent, TelegramUpdate
from confessbot.telegram.router import EventRouter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook", response_model=WebhookAck)
async def telegram_webhook(
    payload: Dict[str, Any] = Body(...),
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
    secret: Optional[str] = Depends(get_webhook_secret),
    event_router: EventRouter = Depends(get_event_router),
):
    """
    Always answers 200 once the caller is authenticated, even for payloads
    the bot cannot use, so Telegram does not keep redelivering them.
    """
    if secret and not hmac.compare_digest(x_telegram_bot_api_secret_token or "", secret):
        logger.warning("[Webhook] rejected update with bad secret token")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret token")

    try:
        update = TelegramUpdate.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"[Webhook] malformed update dropped: {e.error_count()} errors")
        return WebhookAck(ok=False)

    event = InboundEvent.from_update(update)
    if event is None:
        logger.debug(f"[Webhook] update {update.update_id} ignored")
        return WebhookAck()
    await event_router.handle(event)
    return WebhookAck()
