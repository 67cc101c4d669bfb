from datetime import datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def _new_id() -> str:
    return uuid4().hex


class TransactionKind(str, PyEnum):
    INCOME = "income"
    EXPENSE = "expense"


class CategoryNature(str, PyEnum):
    FIXED = "fixed"
    DYNAMIC = "dynamic"


class ReceiptStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class AccountModel(Base):
    __tablename__ = "accounts"

    # Subject issued by the identity provider.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telegram_user_id: Mapped[str | None] = mapped_column(
        String(32), nullable=True, unique=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    categories: Mapped[list["CategoryModel"]] = relationship(
        "CategoryModel", back_populates="account", cascade="all, delete-orphan"
    )


class CategoryModel(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    kind: Mapped[TransactionKind] = mapped_column(Enum(TransactionKind, name="transaction_kind"), nullable=False)
    nature: Mapped[CategoryNature] = mapped_column(
        Enum(CategoryNature, name="category_nature"), nullable=False, default=CategoryNature.DYNAMIC
    )
    budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    payment_due_day: Mapped[int | None] = mapped_column(Integer, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(64), nullable=True)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    account: Mapped[AccountModel] = relationship("AccountModel", back_populates="categories")

    __table_args__ = (
        CheckConstraint(
            "payment_due_day IS NULL OR (payment_due_day BETWEEN 1 AND 31)",
            name="ck_categories_payment_due_day",
        ),
    )


class ReceiptModel(Base):
    __tablename__ = "receipts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    kind: Mapped[TransactionKind] = mapped_column(Enum(TransactionKind, name="transaction_kind"), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Weak reference: the category may be deleted while the receipt survives.
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[ReceiptStatus] = mapped_column(
        Enum(ReceiptStatus, name="receipt_status"), nullable=False, default=ReceiptStatus.PENDING
    )
    image_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_receipts_amount_positive"),
    )


class TransactionModel(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Epoch milliseconds.
    date: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    kind: Mapped[TransactionKind] = mapped_column(Enum(TransactionKind, name="transaction_kind"), nullable=False)
    image_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    receipt_id: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )


class StoredImageModel(Base):
    __tablename__ = "stored_images"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content_type: Mapped[str] = mapped_column(String(64), nullable=False, default="image/jpeg")
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
