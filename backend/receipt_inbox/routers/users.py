from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import AccountModel
from ..schemas import AccountCreate, AccountOut

router = APIRouter(prefix="/users", tags=["users"])


def _account_out(account: AccountModel) -> AccountOut:
    return AccountOut(
        id=account.id,
        name=account.name,
        email=account.email,
        telegram_linked=account.telegram_user_id is not None,
        created_at=account.created_at,
    )


@router.post("", response_model=AccountOut, status_code=status.HTTP_201_CREATED)
def create_account(data: AccountCreate, db: Session = Depends(get_db)) -> AccountOut:
    if crud.get_account(db, data.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Account already exists.")
    account = crud.create_account(db, data)
    return _account_out(account)


@router.get("/{user_id}", response_model=AccountOut)
def get_account(user_id: str, db: Session = Depends(get_db)) -> AccountOut:
    account = crud.get_account(db, user_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return _account_out(account)
