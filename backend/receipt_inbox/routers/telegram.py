import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from ..context import RequestContext, get_request_context
from ..telegram_bot import UNPROCESSABLE, dispatch_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


@router.post("/webhook", response_class=PlainTextResponse)
async def telegram_webhook(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
) -> PlainTextResponse:
    """Receive one Telegram update. Always 200 so Telegram never retries."""
    expected = ctx.settings.telegram_webhook_secret
    if expected and not secrets.compare_digest(secret_token or "", expected):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret.")

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Telegram webhook received a non-JSON body.")
        return PlainTextResponse(UNPROCESSABLE, status_code=status.HTTP_200_OK)

    result = await dispatch_update(ctx, payload)
    return PlainTextResponse(result, status_code=status.HTTP_200_OK)
