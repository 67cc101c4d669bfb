import asyncio
from datetime import datetime, timezone

from receipt_inbox import crud
from receipt_inbox.domain.entities import SpendingSummary, iso_date_to_epoch_ms
from receipt_inbox.models import TransactionKind
from receipt_inbox.schemas import AccountCreate, CategoryCreate
from receipt_inbox.summary import build_spending_summary, month_to_date_bounds, send_spending_summaries

NOW = datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)


def add_transaction(db, account_id, category_id, amount, day, kind=TransactionKind.EXPENSE):
    return crud.create_transaction(
        db,
        account_id=account_id,
        category_id=category_id,
        amount=amount,
        description="",
        date=iso_date_to_epoch_ms(day),
        kind=kind,
    )


def test_month_to_date_bounds():
    start, end = month_to_date_bounds(NOW)
    assert start == iso_date_to_epoch_ms("2026-10-01")
    assert end == int(NOW.timestamp() * 1000)


def test_expenses_grouped_by_category_largest_first(db, account):
    travel = crud.create_category(db, account["id"], CategoryCreate(name="Travel", type="expense"))
    add_transaction(db, account["id"], account["dining_id"], 4.5, "2026-10-02")
    add_transaction(db, account["id"], account["dining_id"], 10.5, "2026-10-09")
    add_transaction(db, account["id"], travel.id, 120, "2026-10-05")
    add_transaction(db, account["id"], account["salary_id"], 3000, "2026-10-01", TransactionKind.INCOME)
    add_transaction(db, account["id"], travel.id, 999, "2026-09-30")

    start, end = month_to_date_bounds(NOW)
    summary = build_spending_summary(db, account["id"], start, end)

    assert summary.categories == [("Travel", 120.0), ("Dining", 15.0)]
    assert summary.total_spending == 135.0


def test_deleted_categories_are_left_out(db, account):
    travel = crud.create_category(db, account["id"], CategoryCreate(name="Travel", type="expense"))
    add_transaction(db, account["id"], travel.id, 50, "2026-10-03")
    add_transaction(db, account["id"], account["dining_id"], 5, "2026-10-03")
    crud.delete_category(db, travel)

    start, end = month_to_date_bounds(NOW)
    summary = build_spending_summary(db, account["id"], start, end)

    assert summary.categories == [("Dining", 5.0)]


def test_summary_message():
    summary = SpendingSummary(start=0, end=1, categories=[("Travel", 120.0), ("Dining", 30.0)])
    message = summary.to_message(NOW)

    assert message.startswith("📊 *Spending Summary for October 2026*")
    assert "*Total Spending:* 150.00" in message
    assert "- Travel: 120.00 (80.0%)" in message
    assert "- Dining: 30.00 (20.0%)" in message


def test_empty_summary_message():
    message = SpendingSummary(start=0, end=1).to_message(NOW)
    assert "No spending recorded this month." in message


def test_summaries_go_to_linked_accounts_only(db, linked_account, chat):
    crud.create_account(db, AccountCreate(id="user_2"))
    add_transaction(db, linked_account["id"], linked_account["dining_id"], 4.5, "2026-10-02")

    delivered = asyncio.run(send_spending_summaries(db, chat, now=NOW))

    assert delivered == 1
    (sent,) = chat.sent
    assert sent["chat_id"] == 555
    assert sent["parse_mode"] == "Markdown"
    assert "- Dining: 4.50 (100.0%)" in sent["text"]


def test_failed_delivery_is_not_counted(db, linked_account, chat):
    chat.fail_send = True

    assert asyncio.run(send_spending_summaries(db, chat, now=NOW)) == 0
