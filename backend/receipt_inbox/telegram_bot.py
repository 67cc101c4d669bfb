"""Telegram webhook handling for the receipt inbox."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from .confirmation import handle_callback
from .config import get_settings
from .context import RequestContext
from .domain.entities import ExtractedTransaction
from .errors import CategoryNotFound, IngestionError
from .identity import link_external_identity, resolve_account_by_external_id
from .models import CategoryModel
from .resolver import resolve_category
from .schemas import TelegramMessage, TelegramPhotoSize, TelegramUpdate
from .telegram_client import TelegramClient, notify, receipt_keyboard

logger = logging.getLogger(__name__)

settings = get_settings()

START_PATTERN = re.compile(r"^/start(?:@\w+)?(?:\s+(?P<param>\S+))?(?:\s.*)?$", re.IGNORECASE | re.DOTALL)

LINKED_MESSAGE = "Your telegram successfully connected! You can now start uploading your receipts."
ALREADY_LINKED_MESSAGE = "Your telegram is already connected. Send me a receipt whenever you're ready."
REBOUND_NOTE = "Note: this Telegram account was previously connected to a different user."
START_WITHOUT_ACCOUNT = (
    "Hi! To get started, open the app and use the Connect Telegram link "
    "so I know which account your receipts belong to."
)
USAGE_HINT = 'Send me a short description like "Coffee 4.50" or a photo of a receipt.'
GENERIC_FAILURE = "Sorry, I encountered an error processing your message. Please try again later."
CONFIRM_PROMPT = "Save this as a transaction?"

NO_MESSAGE = "No message to process"
PROCESSED = "OK"
UNPROCESSABLE = "Message unable to be processed"


def _sender_id(message: TelegramMessage) -> str:
    if message.from_user is not None:
        return str(message.from_user.id)
    return str(message.chat.id)


def _largest_photo(photos: Sequence[TelegramPhotoSize]) -> TelegramPhotoSize:
    # Telegram lists sizes smallest first; dimensions decide when present.
    return max(enumerate(photos), key=lambda item: (item[1].width * item[1].height, item[0]))[1]


def format_receipt_summary(extracted: ExtractedTransaction, category_name: str, type_: str) -> str:
    lines = ["🧾 Extracted Data:"]
    lines.extend(extracted.summary_lines(category_name, type_))
    lines.extend(["", CONFIRM_PROMPT])
    return "\n".join(lines)


async def dispatch_update(ctx: RequestContext, payload: Any) -> str:
    """Entry point for one webhook call. Never raises."""
    try:
        update = TelegramUpdate.model_validate(payload)
        if update.callback_query is not None:
            await handle_callback(ctx, update.callback_query)
            return PROCESSED
        if update.message is None:
            logger.info("Update %s carries no message, ignoring.", update.update_id)
            return NO_MESSAGE
        await handle_message(ctx, update.message)
        return PROCESSED
    except ValidationError as exc:
        logger.warning("Malformed Telegram update %s: %s", payload, exc)
        return UNPROCESSABLE
    except Exception:  # noqa: BLE001
        logger.exception("Error processing Telegram update: %s", payload)
        return UNPROCESSABLE


async def handle_message(ctx: RequestContext, message: TelegramMessage) -> None:
    chat_id = message.chat.id
    text = (message.text or "").strip()
    try:
        start = START_PATTERN.match(text) if text else None
        if start:
            await _handle_start(ctx, message, start.group("param"))
            return

        if text.startswith("/"):
            await notify(ctx.chat, chat_id, USAGE_HINT)
            return

        account_id = await asyncio.to_thread(resolve_account_by_external_id, ctx.db, _sender_id(message))

        if text:
            await _ingest_text(ctx, account_id, message, text)
        elif message.photo:
            await _ingest_photo(ctx, account_id, message)
        else:
            await notify(ctx.chat, chat_id, USAGE_HINT)
    except IngestionError as exc:
        logger.warning("Message from chat %s not ingested: %s", chat_id, exc)
        await notify(ctx.chat, chat_id, exc.user_message)
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error handling message from chat %s", chat_id)
        await notify(ctx.chat, chat_id, GENERIC_FAILURE)


async def _handle_start(ctx: RequestContext, message: TelegramMessage, account_id: str | None) -> None:
    if not account_id:
        await notify(ctx.chat, message.chat.id, START_WITHOUT_ACCOUNT)
        return

    result = await asyncio.to_thread(
        link_external_identity,
        ctx.db,
        account_id,
        _sender_id(message),
        allow_relink=ctx.settings.allow_relink,
    )
    if result.already_linked:
        reply = ALREADY_LINKED_MESSAGE
    else:
        reply = LINKED_MESSAGE
        if result.rebound_from:
            reply = f"{reply}\n\n{REBOUND_NOTE}"
    await notify(ctx.chat, message.chat.id, reply)


async def _load_categories(ctx: RequestContext, account_id: str) -> list[CategoryModel]:
    categories = await asyncio.to_thread(ctx.store.list_categories, account_id)
    if not categories:
        raise CategoryNotFound(None, [])
    return categories


async def _ingest_text(ctx: RequestContext, account_id: str, message: TelegramMessage, text: str) -> None:
    categories = await _load_categories(ctx, account_id)
    extracted = await asyncio.to_thread(ctx.extractor.extract_from_text, text, categories)
    category = resolve_category(ctx.store, account_id, extracted.category, categories)
    await _record_receipt(ctx, account_id, message.chat.id, extracted, category)


async def _ingest_photo(ctx: RequestContext, account_id: str, message: TelegramMessage) -> None:
    categories = await _load_categories(ctx, account_id)
    photo = _largest_photo(message.photo)
    data = await ctx.chat.download_file(photo.file_id)
    image_id = await asyncio.to_thread(ctx.images.save, account_id, data)
    try:
        extracted = await asyncio.to_thread(
            ctx.extractor.extract_from_image,
            ctx.images.url_for(image_id),
            categories,
            None,
            message.caption,
        )
        category = resolve_category(ctx.store, account_id, extracted.category, categories)
    except Exception:
        # Nothing references the image yet.
        await asyncio.to_thread(ctx.images.delete, image_id)
        raise
    await _record_receipt(ctx, account_id, message.chat.id, extracted, category, image_id=image_id)


async def _record_receipt(
    ctx: RequestContext,
    account_id: str,
    chat_id: int,
    extracted: ExtractedTransaction,
    category: CategoryModel,
    image_id: str | None = None,
) -> str:
    category_name = category.name
    type_ = extracted.type or category.kind.value

    receipt_id = await asyncio.to_thread(ctx.store.insert_receipt, account_id, extracted, category, image_id)
    logger.info("Created pending receipt %s for account %s", receipt_id, account_id)

    await ctx.chat.send_message(
        chat_id,
        format_receipt_summary(extracted, category_name, type_),
        reply_markup=receipt_keyboard(receipt_id),
    )
    return receipt_id


def main() -> None:
    """Register the webhook URL with Telegram."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if not settings.telegram_bot_token:
        raise SystemExit("Please set TELEGRAM_BOT_TOKEN in the environment to register the webhook.")

    url = f"{settings.public_base_url}{settings.api_prefix}/telegram/webhook"
    client = TelegramClient(settings.telegram_bot_token)

    async def _register() -> None:
        try:
            await client.set_webhook(url, secret_token=settings.telegram_webhook_secret)
        finally:
            await client.close()

    asyncio.run(_register())
    logger.info("Telegram webhook registered at %s", url)


if __name__ == "__main__":
    main()
