from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..config import get_settings
from ..confirmation import Decision, confirm, discard
from ..db import get_db
from ..errors import ReceiptAlreadyProcessed, ReceiptNotFound
from ..models import ReceiptModel, ReceiptStatus
from ..receipts import ReceiptStore
from ..schemas import ReceiptDecision, ReceiptOut, ReceiptStatusType
from ..storage import image_url

router = APIRouter(prefix="/users/{user_id}/receipts", tags=["receipts"])

settings = get_settings()


def _receipt_out(receipt: ReceiptModel, names: dict[int, str]) -> ReceiptOut:
    return ReceiptOut(
        id=receipt.id,
        account_id=receipt.account_id,
        date=receipt.date,
        type=receipt.kind.value,
        description=receipt.description,
        category_id=receipt.category_id,
        category_name=names.get(receipt.category_id, crud.UNKNOWN_CATEGORY),
        amount=receipt.amount,
        status=receipt.status.value,
        image_url=image_url(settings, receipt.image_id),
    )


def _decide(action, db: Session, user_id: str, receipt_id: str) -> ReceiptDecision:
    try:
        decision: Decision = action(ReceiptStore(db), receipt_id, account_id=user_id)
    except ReceiptNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receipt not found.") from exc
    except ReceiptAlreadyProcessed as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Receipt already processed.") from exc
    return ReceiptDecision(
        receipt_id=decision.receipt_id,
        status=decision.status,
        transaction_id=decision.transaction_id,
    )


@router.get("", response_model=list[ReceiptOut])
def list_receipts(
    user_id: str,
    status_: ReceiptStatusType | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[ReceiptOut]:
    receipts = crud.list_receipts(db, user_id, status=ReceiptStatus(status_) if status_ else None)
    names = crud.category_names(db, {receipt.category_id for receipt in receipts})
    return [_receipt_out(receipt, names) for receipt in receipts]


@router.get("/{receipt_id}", response_model=ReceiptOut)
def get_receipt(user_id: str, receipt_id: str, db: Session = Depends(get_db)) -> ReceiptOut:
    receipt = crud.get_receipt(db, receipt_id)
    if not receipt or receipt.account_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receipt not found.")
    return _receipt_out(receipt, crud.category_names(db, {receipt.category_id}))


@router.post("/{receipt_id}/approve", response_model=ReceiptDecision)
def approve_receipt(user_id: str, receipt_id: str, db: Session = Depends(get_db)) -> ReceiptDecision:
    return _decide(confirm, db, user_id, receipt_id)


@router.post("/{receipt_id}/discard", response_model=ReceiptDecision)
def discard_receipt(user_id: str, receipt_id: str, db: Session = Depends(get_db)) -> ReceiptDecision:
    return _decide(discard, db, user_id, receipt_id)
