"""Thin async adapter over the Telegram Bot API."""

from __future__ import annotations

import logging

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import TelegramError

from .domain.entities import ReceiptAction, ReceiptCallback
from .errors import DownstreamHttpFailure

logger = logging.getLogger(__name__)


def receipt_keyboard(receipt_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(
                    "✅ Confirm",
                    callback_data=ReceiptCallback(ReceiptAction.CONFIRM, receipt_id).encode(),
                ),
                InlineKeyboardButton(
                    "❌ Discard",
                    callback_data=ReceiptCallback(ReceiptAction.DISCARD, receipt_id).encode(),
                ),
            ]
        ]
    )


class TelegramClient:
    """Wraps ``telegram.Bot`` and maps transport errors to ``DownstreamHttpFailure``."""

    def __init__(self, token: str | None) -> None:
        self._token = token
        self._bot: Bot | None = None

    async def _get_bot(self) -> Bot:
        if not self._token:
            raise DownstreamHttpFailure("TELEGRAM_BOT_TOKEN is not configured.")
        try:
            if self._bot is None:
                self._bot = Bot(self._token)
            # No-op once initialised.
            await self._bot.initialize()
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"Telegram bot initialisation failed: {exc}") from exc
        return self._bot

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        reply_markup: InlineKeyboardMarkup | None = None,
        parse_mode: str | None = None,
    ) -> None:
        bot = await self._get_bot()
        try:
            await bot.send_message(
                chat_id=chat_id,
                text=text,
                reply_markup=reply_markup,
                parse_mode=parse_mode,
            )
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"sendMessage failed: {exc}") from exc

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: str | None = None,
    ) -> None:
        """Replace the message text; the inline keyboard is dropped."""
        bot = await self._get_bot()
        try:
            await bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=parse_mode,
            )
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"editMessageText failed: {exc}") from exc

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        bot = await self._get_bot()
        try:
            await bot.answer_callback_query(callback_query_id, text=text)
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"answerCallbackQuery failed: {exc}") from exc

    async def download_file(self, file_id: str) -> bytes:
        """Resolve ``file_id`` through getFile and download the content."""
        bot = await self._get_bot()
        try:
            file = await bot.get_file(file_id)
            logger.info("Downloading Telegram file %s", file.file_path)
            return bytes(await file.download_as_bytearray())
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"getFile failed: {exc}") from exc

    async def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        bot = await self._get_bot()
        try:
            await bot.set_webhook(
                url=url,
                secret_token=secret_token,
                allowed_updates=["message", "callback_query"],
            )
        except TelegramError as exc:
            raise DownstreamHttpFailure(f"setWebhook failed: {exc}") from exc

    async def close(self) -> None:
        if self._bot is not None:
            await self._bot.shutdown()
            self._bot = None


async def notify(chat: TelegramClient, chat_id: int | None, text: str, **kwargs) -> bool:
    """Best-effort message to the user; delivery failures are only logged."""
    if chat_id is None:
        logger.warning("Dropping message without a chat id: %s", text)
        return False
    try:
        await chat.send_message(chat_id, text, **kwargs)
    except DownstreamHttpFailure as exc:
        logger.error("Failed to send message to chat %s: %s", chat_id, exc)
        return False
    return True
