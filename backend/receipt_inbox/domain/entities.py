from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Literal

TransactionType = Literal["income", "expense"]


def iso_date_to_epoch_ms(value: str) -> int:
    """Convert ``YYYY-MM-DD`` to epoch milliseconds at UTC midnight."""
    day = date.fromisoformat(value[:10])
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp() * 1000)


@dataclass(slots=True)
class ExtractedTransaction:
    """Candidate transaction read from a chat message or a receipt photo."""

    date: str
    category: str
    amount: float
    description: str
    type: TransactionType | None = None

    def summary_lines(self, category_name: str, type_: TransactionType) -> list[str]:
        return [
            f"Date: {self.date}",
            f"Type: {type_}",
            f"Description: {self.description}",
            f"Category: {category_name}",
            f"Amount: {self.amount:.2f}",
        ]


class ReceiptAction(str, Enum):
    CONFIRM = "confirm_receipt"
    DISCARD = "discard_receipt"


@dataclass(frozen=True, slots=True)
class ReceiptCallback:
    action: ReceiptAction
    receipt_id: str

    def encode(self) -> str:
        return f"{self.action.value}:{self.receipt_id}"

    @classmethod
    def parse(cls, data: str | None) -> ReceiptCallback | None:
        """Decode ``<action>:<receiptId>``; anything unrecognised yields None."""
        if not data or ":" not in data:
            return None
        tag, _, receipt_id = data.partition(":")
        receipt_id = receipt_id.strip()
        if not receipt_id:
            return None
        try:
            action = ReceiptAction(tag)
        except ValueError:
            return None
        return cls(action=action, receipt_id=receipt_id)


@dataclass(slots=True)
class SpendingSummary:
    """Expense totals per category over a period."""

    start: int
    end: int
    categories: list[tuple[str, float]] = field(default_factory=list)

    @property
    def total_spending(self) -> float:
        return sum(amount for _, amount in self.categories)

    def to_message(self, now: datetime) -> str:
        lines = [f"📊 *Spending Summary for {now:%B %Y}*", ""]
        if not self.categories:
            lines.append("No spending recorded this month.")
            return "\n".join(lines)

        total = self.total_spending
        lines.append(f"*Total Spending:* {total:.2f}")
        lines.append("")
        lines.append("*Breakdown by Category:*")
        for name, amount in self.categories:
            share = amount / total * 100 if total else 0.0
            lines.append(f"- {name}: {amount:.2f} ({share:.1f}%)")
        return "\n".join(lines)
