"""Month-to-date spending summaries pushed to linked Telegram accounts.

Run ``receipt-inbox-summary`` once a day from cron.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from . import crud
from .config import get_settings
from .db import SessionLocal
from .domain.entities import SpendingSummary
from .errors import DownstreamHttpFailure
from .telegram_client import TelegramClient

logger = logging.getLogger(__name__)

settings = get_settings()


def month_to_date_bounds(now: datetime) -> tuple[int, int]:
    """Epoch-ms bounds from the first of ``now``'s month (UTC) up to ``now``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return int(start.timestamp() * 1000), int(now.timestamp() * 1000)


def build_spending_summary(db: Session, account_id: str, start: int, end: int) -> SpendingSummary:
    return SpendingSummary(
        start=start,
        end=end,
        categories=crud.expense_totals_by_category(db, account_id, start, end),
    )


async def send_spending_summaries(db: Session, chat: TelegramClient, now: datetime | None = None) -> int:
    """Send the summary to every linked account; returns how many were delivered."""
    now = now or datetime.now(timezone.utc)
    start, end = month_to_date_bounds(now)

    delivered = 0
    for account in crud.list_linked_accounts(db):
        summary = build_spending_summary(db, account.id, start, end)
        try:
            await chat.send_message(
                int(account.telegram_user_id),
                summary.to_message(now),
                parse_mode="Markdown",
            )
        except DownstreamHttpFailure as exc:
            logger.error("Could not send summary to account %s: %s", account.id, exc)
            continue
        delivered += 1
    logger.info("Sent %d spending summaries", delivered)
    return delivered


def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if not settings.telegram_bot_token:
        raise SystemExit("Please set TELEGRAM_BOT_TOKEN in the environment to send summaries.")

    client = TelegramClient(settings.telegram_bot_token)

    async def _run() -> None:
        try:
            with SessionLocal() as db:
                await send_spending_summaries(db, client)
        finally:
            await client.close()

    asyncio.run(_run())


if __name__ == "__main__":
    main()
