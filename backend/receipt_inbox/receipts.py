"""The narrow persistence interface the ingestion pipeline works against."""

from __future__ import annotations

from sqlalchemy.orm import Session

from . import crud
from .domain.entities import ExtractedTransaction
from .errors import ReceiptNotFound
from .models import CategoryModel, ReceiptModel, ReceiptStatus, TransactionKind


class ReceiptStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_categories(self, account_id: str) -> list[CategoryModel]:
        return crud.list_categories(self.db, account_id, active_only=True)

    def insert_receipt(
        self,
        account_id: str,
        extracted: ExtractedTransaction,
        category: CategoryModel,
        image_id: str | None = None,
    ) -> str:
        kind = TransactionKind(extracted.type) if extracted.type else category.kind
        receipt = crud.insert_receipt(
            self.db,
            account_id=account_id,
            date=extracted.date,
            kind=kind,
            description=extracted.description,
            category_id=category.id,
            amount=extracted.amount,
            image_id=image_id,
        )
        return receipt.id

    def get_receipt(self, receipt_id: str) -> ReceiptModel:
        receipt = crud.get_receipt(self.db, receipt_id)
        if receipt is None:
            raise ReceiptNotFound(f"receipt {receipt_id} does not exist")
        return receipt

    def update_status(self, receipt_id: str, status: ReceiptStatus, *, commit: bool = True) -> bool:
        """Conditional PENDING -> ``status``; False when another caller got there first."""
        return crud.update_receipt_status(self.db, receipt_id, status, commit=commit)

    def delete_receipt(self, receipt_id: str) -> bool:
        return crud.delete_receipt(self.db, receipt_id)

    def create_transaction(self, receipt: ReceiptModel, date: int, *, commit: bool = True) -> int:
        transaction = crud.create_transaction(
            self.db,
            account_id=receipt.account_id,
            category_id=receipt.category_id,
            amount=receipt.amount,
            description=receipt.description,
            date=date,
            kind=receipt.kind,
            image_id=receipt.image_id,
            receipt_id=receipt.id,
            commit=commit,
        )
        return transaction.id

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
