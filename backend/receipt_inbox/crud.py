from collections import defaultdict

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .models import (
    AccountModel,
    CategoryModel,
    CategoryNature,
    ReceiptModel,
    ReceiptStatus,
    StoredImageModel,
    TransactionKind,
    TransactionModel,
)
from .schemas import AccountCreate, CategoryCreate, CategoryUpdate, TransactionType

UNKNOWN_CATEGORY = "Unknown Category"


def create_account(db: Session, data: AccountCreate) -> AccountModel:
    account = AccountModel(id=data.id, name=data.name, email=data.email)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


def get_account(db: Session, account_id: str) -> AccountModel | None:
    return db.get(AccountModel, account_id)


def get_account_by_telegram_id(db: Session, telegram_user_id: str) -> AccountModel | None:
    return db.scalar(select(AccountModel).where(AccountModel.telegram_user_id == telegram_user_id))


def list_linked_accounts(db: Session) -> list[AccountModel]:
    stmt = select(AccountModel).where(AccountModel.telegram_user_id.is_not(None)).order_by(AccountModel.id)
    return list(db.scalars(stmt))


def set_telegram_user_id(db: Session, account: AccountModel, telegram_user_id: str) -> str | None:
    """Bind a Telegram id to the account, unbinding it from whoever held it.

    Returns the id of the account that previously held the Telegram id, if any.
    """
    previous = get_account_by_telegram_id(db, telegram_user_id)
    previous_id = previous.id if previous else None
    if previous is not None and previous.id != account.id:
        previous.telegram_user_id = None
        # Release the unique value before it is reassigned.
        db.flush()
    account.telegram_user_id = telegram_user_id
    db.add(account)
    db.commit()
    db.refresh(account)
    return previous_id


def create_category(db: Session, account_id: str, data: CategoryCreate) -> CategoryModel:
    category = CategoryModel(
        account_id=account_id,
        name=data.name.strip(),
        description=data.description,
        kind=TransactionKind(data.type),
        nature=CategoryNature(data.nature),
        budget=data.budget,
        payment_due_day=data.payment_due_day,
        icon=data.icon,
        color=data.color,
        is_active=data.is_active,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def get_category(db: Session, category_id: int, account_id: str) -> CategoryModel | None:
    stmt = select(CategoryModel).where(
        CategoryModel.id == category_id, CategoryModel.account_id == account_id
    )
    return db.scalar(stmt)


def list_categories(
    db: Session,
    account_id: str,
    type_: TransactionType | None = None,
    active_only: bool = False,
) -> list[CategoryModel]:
    stmt = select(CategoryModel).where(CategoryModel.account_id == account_id)
    if type_:
        stmt = stmt.where(CategoryModel.kind == TransactionKind(type_))
    if active_only:
        stmt = stmt.where(CategoryModel.is_active.is_(True))
    stmt = stmt.order_by(CategoryModel.name, CategoryModel.id)
    return list(db.scalars(stmt))


def update_category(db: Session, category: CategoryModel, data: CategoryUpdate) -> CategoryModel:
    changes = data.model_dump(exclude_unset=True)
    if "type" in changes:
        changes["kind"] = TransactionKind(changes.pop("type"))
    if "nature" in changes:
        changes["nature"] = CategoryNature(changes["nature"])
    if "name" in changes and changes["name"]:
        changes["name"] = changes["name"].strip()

    if changes:
        stmt = (
            update(CategoryModel)
            .where(CategoryModel.id == category.id)
            .values(**changes)
            .execution_options(synchronize_session="fetch")
        )
        db.execute(stmt)
        db.commit()
        db.refresh(category)
    return category


def count_category_transactions(db: Session, category_id: int) -> int:
    return (
        db.query(func.count(TransactionModel.id))
        .filter(TransactionModel.category_id == category_id)
        .scalar()
        or 0
    )


def delete_category(db: Session, category: CategoryModel, cascade: bool = False) -> int:
    """Delete a category; with ``cascade`` its transactions go too. Returns removed transactions."""
    removed = 0
    if cascade:
        removed = (
            db.query(TransactionModel)
            .filter(TransactionModel.category_id == category.id)
            .delete()
        )
    db.delete(category)
    db.commit()
    return removed


def category_names(db: Session, category_ids: set[int]) -> dict[int, str]:
    if not category_ids:
        return {}
    stmt = select(CategoryModel.id, CategoryModel.name).where(CategoryModel.id.in_(category_ids))
    return {row.id: row.name for row in db.execute(stmt)}


def insert_receipt(
    db: Session,
    *,
    account_id: str,
    date: str,
    kind: TransactionKind,
    description: str,
    category_id: int,
    amount: float,
    image_id: str | None = None,
) -> ReceiptModel:
    receipt = ReceiptModel(
        account_id=account_id,
        date=date,
        kind=kind,
        description=description,
        category_id=category_id,
        amount=amount,
        status=ReceiptStatus.PENDING,
        image_id=image_id,
    )
    db.add(receipt)
    db.commit()
    db.refresh(receipt)
    return receipt


def get_receipt(db: Session, receipt_id: str) -> ReceiptModel | None:
    return db.get(ReceiptModel, receipt_id)


def list_receipts(
    db: Session,
    account_id: str,
    status: ReceiptStatus | None = None,
) -> list[ReceiptModel]:
    stmt = select(ReceiptModel).where(ReceiptModel.account_id == account_id)
    if status:
        stmt = stmt.where(ReceiptModel.status == status)
    stmt = stmt.order_by(ReceiptModel.created_at.desc(), ReceiptModel.id)
    return list(db.scalars(stmt))


def update_receipt_status(
    db: Session,
    receipt_id: str,
    status: ReceiptStatus,
    *,
    expected: ReceiptStatus = ReceiptStatus.PENDING,
    commit: bool = True,
) -> bool:
    """Move a receipt to ``status`` only if it is still in ``expected``."""
    stmt = (
        update(ReceiptModel)
        .where(ReceiptModel.id == receipt_id, ReceiptModel.status == expected)
        .values(status=status)
        .execution_options(synchronize_session="fetch")
    )
    changed = db.execute(stmt).rowcount == 1
    if commit:
        db.commit()
    return changed


def delete_receipt(
    db: Session,
    receipt_id: str,
    *,
    expected: ReceiptStatus = ReceiptStatus.PENDING,
) -> bool:
    """Delete a receipt still in ``expected`` status together with its stored image."""
    image_id = db.scalar(select(ReceiptModel.image_id).where(ReceiptModel.id == receipt_id))
    stmt = (
        delete(ReceiptModel)
        .where(ReceiptModel.id == receipt_id, ReceiptModel.status == expected)
        .execution_options(synchronize_session="fetch")
    )
    deleted = db.execute(stmt).rowcount == 1
    if deleted and image_id:
        db.execute(delete(StoredImageModel).where(StoredImageModel.id == image_id))
    db.commit()
    return deleted


def create_transaction(
    db: Session,
    *,
    account_id: str,
    category_id: int,
    amount: float,
    description: str,
    date: int,
    kind: TransactionKind,
    image_id: str | None = None,
    receipt_id: str | None = None,
    commit: bool = True,
) -> TransactionModel:
    transaction = TransactionModel(
        account_id=account_id,
        category_id=category_id,
        amount=amount,
        description=description,
        date=date,
        kind=kind,
        image_id=image_id,
        receipt_id=receipt_id,
    )
    db.add(transaction)
    if commit:
        db.commit()
        db.refresh(transaction)
    else:
        db.flush()
    return transaction


def get_transaction(db: Session, transaction_id: int, account_id: str) -> TransactionModel | None:
    stmt = select(TransactionModel).where(
        TransactionModel.id == transaction_id, TransactionModel.account_id == account_id
    )
    return db.scalar(stmt)


def list_transactions(
    db: Session,
    account_id: str,
    type_: TransactionType | None = None,
    category_id: int | None = None,
    start: int | None = None,
    end: int | None = None,
) -> list[TransactionModel]:
    stmt = select(TransactionModel).where(TransactionModel.account_id == account_id)

    if type_:
        stmt = stmt.where(TransactionModel.kind == TransactionKind(type_))
    if category_id is not None:
        stmt = stmt.where(TransactionModel.category_id == category_id)
    if start is not None:
        stmt = stmt.where(TransactionModel.date >= start)
    if end is not None:
        stmt = stmt.where(TransactionModel.date <= end)

    stmt = stmt.order_by(TransactionModel.date.desc(), TransactionModel.id.desc())
    return list(db.scalars(stmt))


def delete_transaction(db: Session, transaction: TransactionModel) -> None:
    db.delete(transaction)
    db.commit()


def store_image(db: Session, account_id: str, data: bytes, content_type: str) -> StoredImageModel:
    image = StoredImageModel(account_id=account_id, data=data, content_type=content_type)
    db.add(image)
    db.commit()
    db.refresh(image)
    return image


def get_image(db: Session, image_id: str) -> StoredImageModel | None:
    return db.get(StoredImageModel, image_id)


def delete_image(db: Session, image_id: str) -> bool:
    deleted = db.execute(delete(StoredImageModel).where(StoredImageModel.id == image_id)).rowcount == 1
    db.commit()
    return deleted


def expense_totals_by_category(db: Session, account_id: str, start: int, end: int) -> list[tuple[str, float]]:
    """Sum expenses per category between two epoch-ms bounds, largest first.

    Transactions whose category no longer exists are skipped.
    """
    transactions = list_transactions(db, account_id, type_="expense", start=start, end=end)
    names = category_names(db, {tx.category_id for tx in transactions})

    totals: defaultdict[int, float] = defaultdict(float)
    for tx in transactions:
        if tx.category_id not in names:
            continue
        totals[tx.category_id] += float(tx.amount)

    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [(names[category_id], amount) for category_id, amount in ranked]
