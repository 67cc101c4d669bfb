from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..db import get_db
from ..models import CategoryModel
from ..schemas import CategoryCreate, CategoryOut, CategoryUpdate, TransactionType

router = APIRouter(prefix="/users/{user_id}/categories", tags=["categories"])


def _category_out(category: CategoryModel) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        account_id=category.account_id,
        name=category.name,
        description=category.description,
        type=category.kind.value,
        nature=category.nature.value,
        budget=category.budget,
        payment_due_day=category.payment_due_day,
        icon=category.icon,
        color=category.color,
        is_active=category.is_active,
    )


def _require_account(db: Session, user_id: str) -> None:
    if not crud.get_account(db, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")


def _require_category(db: Session, user_id: str, category_id: int) -> CategoryModel:
    category = crud.get_category(db, category_id, user_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found.")
    return category


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(user_id: str, data: CategoryCreate, db: Session = Depends(get_db)) -> CategoryOut:
    _require_account(db, user_id)
    existing = {c.name.casefold() for c in crud.list_categories(db, user_id)}
    if data.name.strip().casefold() in existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category name already in use.")
    category = crud.create_category(db, user_id, data)
    return _category_out(category)


@router.get("", response_model=list[CategoryOut])
def list_categories(
    user_id: str,
    type_: TransactionType | None = Query(default=None, alias="type"),
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[CategoryOut]:
    _require_account(db, user_id)
    categories = crud.list_categories(db, user_id, type_=type_, active_only=active_only)
    return [_category_out(category) for category in categories]


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(user_id: str, category_id: int, db: Session = Depends(get_db)) -> CategoryOut:
    return _category_out(_require_category(db, user_id, category_id))


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    user_id: str,
    category_id: int,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
) -> CategoryOut:
    category = _require_category(db, user_id, category_id)
    if data.name is not None:
        clash = {
            c.name.casefold() for c in crud.list_categories(db, user_id) if c.id != category.id
        }
        if data.name.strip().casefold() in clash:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Category name already in use.")
    updated = crud.update_category(db, category, data)
    return _category_out(updated)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    user_id: str,
    category_id: int,
    cascade: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> None:
    category = _require_category(db, user_id, category_id)
    if not cascade and crud.count_category_transactions(db, category.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category is in use by transactions; pass cascade=true to delete them too.",
        )
    crud.delete_category(db, category, cascade=cascade)
