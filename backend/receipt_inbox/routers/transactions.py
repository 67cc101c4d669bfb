from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..config import get_settings
from ..db import get_db
from ..domain.entities import iso_date_to_epoch_ms
from ..models import TransactionKind, TransactionModel
from ..schemas import TransactionCreate, TransactionOut, TransactionType
from ..storage import image_url

router = APIRouter(prefix="/users/{user_id}/transactions", tags=["transactions"])

settings = get_settings()

_DAY_MS = 24 * 60 * 60 * 1000


def _transaction_out(transaction: TransactionModel, names: dict[int, str]) -> TransactionOut:
    return TransactionOut(
        id=transaction.id,
        account_id=transaction.account_id,
        category_id=transaction.category_id,
        category_name=names.get(transaction.category_id, crud.UNKNOWN_CATEGORY),
        amount=transaction.amount,
        description=transaction.description,
        date=transaction.date,
        type=transaction.kind.value,
        image_url=image_url(settings, transaction.image_id),
        receipt_id=transaction.receipt_id,
    )


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(user_id: str, data: TransactionCreate, db: Session = Depends(get_db)) -> TransactionOut:
    if not crud.get_account(db, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    category = crud.get_category(db, data.category_id, user_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown category.")

    transaction = crud.create_transaction(
        db,
        account_id=user_id,
        category_id=category.id,
        amount=data.amount,
        description=data.description,
        date=iso_date_to_epoch_ms(data.date.isoformat()),
        kind=TransactionKind(data.type),
    )
    return _transaction_out(transaction, {category.id: category.name})


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    user_id: str,
    type_: TransactionType | None = Query(default=None, alias="type"),
    category_id: int | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[TransactionOut]:
    transactions = crud.list_transactions(
        db,
        account_id=user_id,
        type_=type_,
        category_id=category_id,
        start=iso_date_to_epoch_ms(start_date.isoformat()) if start_date else None,
        # Inclusive of the whole end day.
        end=iso_date_to_epoch_ms(end_date.isoformat()) + _DAY_MS - 1 if end_date else None,
    )
    names = crud.category_names(db, {tx.category_id for tx in transactions})
    return [_transaction_out(tx, names) for tx in transactions]


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(user_id: str, transaction_id: int, db: Session = Depends(get_db)) -> TransactionOut:
    transaction = crud.get_transaction(db, transaction_id, user_id)
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found.")
    names = crud.category_names(db, {transaction.category_id})
    return _transaction_out(transaction, names)


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(user_id: str, transaction_id: int, db: Session = Depends(get_db)) -> None:
    transaction = crud.get_transaction(db, transaction_id, user_id)
    if not transaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found.")
    crud.delete_transaction(db, transaction)
