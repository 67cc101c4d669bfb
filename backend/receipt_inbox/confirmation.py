"""PENDING -> APPROVED / discarded transitions driven by inline keyboard callbacks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from .context import RequestContext
from .domain.entities import ReceiptAction, ReceiptCallback, iso_date_to_epoch_ms
from .errors import DownstreamHttpFailure, IngestionError, ReceiptAlreadyProcessed, ReceiptNotFound
from .models import ReceiptModel, ReceiptStatus
from .receipts import ReceiptStore
from .schemas import TelegramCallbackQuery
from .telegram_client import notify

logger = logging.getLogger(__name__)

GENERIC_CALLBACK_FAILURE = "Sorry, something went wrong while updating that receipt. Please try again later."
CONFIRMED_SUFFIX = "✅ Saved as a transaction."
DISCARDED_SUFFIX = "🗑 Discarded."


@dataclass(frozen=True)
class Decision:
    receipt_id: str
    status: str
    transaction_id: int | None = None


def _load_pending(store: ReceiptStore, receipt_id: str, account_id: str | None) -> ReceiptModel:
    receipt = store.get_receipt(receipt_id)
    if account_id is not None and receipt.account_id != account_id:
        raise ReceiptNotFound(f"receipt {receipt_id} does not belong to account {account_id}")
    if receipt.status != ReceiptStatus.PENDING:
        raise ReceiptAlreadyProcessed(f"receipt {receipt_id} is {receipt.status.value}")
    return receipt


def confirm(store: ReceiptStore, receipt_id: str, account_id: str | None = None) -> Decision:
    """Approve a pending receipt and record exactly one transaction for it."""
    receipt = _load_pending(store, receipt_id, account_id)
    date = iso_date_to_epoch_ms(receipt.date)
    try:
        if not store.update_status(receipt_id, ReceiptStatus.APPROVED, commit=False):
            raise ReceiptAlreadyProcessed(f"receipt {receipt_id} left PENDING concurrently")
        transaction_id = store.create_transaction(receipt, date, commit=False)
        store.commit()
    except IntegrityError as exc:
        store.rollback()
        raise ReceiptAlreadyProcessed(f"receipt {receipt_id} already has a transaction") from exc
    except Exception:
        store.rollback()
        raise

    logger.info("Receipt %s approved as transaction %s", receipt_id, transaction_id)
    return Decision(receipt_id=receipt_id, status="APPROVED", transaction_id=transaction_id)


def discard(store: ReceiptStore, receipt_id: str, account_id: str | None = None) -> Decision:
    """Delete a pending receipt."""
    _load_pending(store, receipt_id, account_id)
    if not store.delete_receipt(receipt_id):
        raise ReceiptNotFound(f"receipt {receipt_id} was removed concurrently")
    logger.info("Receipt %s discarded", receipt_id)
    return Decision(receipt_id=receipt_id, status="DISCARDED")


async def handle_callback(ctx: RequestContext, query: TelegramCallbackQuery) -> None:
    """Answer the callback, apply the action and update the originating message.

    Never raises; failures become a chat message.
    """
    try:
        await ctx.chat.answer_callback_query(query.id)
    except DownstreamHttpFailure as exc:
        logger.warning("Could not answer callback query %s: %s", query.id, exc)

    callback = ReceiptCallback.parse(query.data)
    if callback is None:
        logger.info("Ignoring callback query %s with data %r", query.id, query.data)
        return

    message = query.message
    chat_id = message.chat.id if message else (query.from_user.id if query.from_user else None)

    try:
        if callback.action is ReceiptAction.CONFIRM:
            await asyncio.to_thread(confirm, ctx.store, callback.receipt_id)
            suffix = CONFIRMED_SUFFIX
        else:
            await asyncio.to_thread(discard, ctx.store, callback.receipt_id)
            suffix = DISCARDED_SUFFIX
    except IngestionError as exc:
        logger.warning("Callback %s failed: %s", callback.encode(), exc)
        await notify(ctx.chat, chat_id, exc.user_message)
        return
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error handling callback %s", callback.encode())
        await notify(ctx.chat, chat_id, GENERIC_CALLBACK_FAILURE)
        return

    # The decision is committed; from here on only delivery can fail.
    if message is not None and message.message_id is not None:
        original = (message.text or "").strip()
        text = f"{original}\n\n{suffix}" if original else suffix
        try:
            await ctx.chat.edit_message_text(message.chat.id, message.message_id, text)
        except DownstreamHttpFailure as exc:
            logger.warning("Could not edit message %s: %s", message.message_id, exc)
            await notify(ctx.chat, chat_id, suffix)
    else:
        await notify(ctx.chat, chat_id, suffix)
