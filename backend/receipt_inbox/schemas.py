from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


TransactionType = Literal["income", "expense"]
CategoryNatureType = Literal["fixed", "dynamic"]
ReceiptStatusType = Literal["PENDING", "APPROVED"]


# Inbound Telegram payloads. Only the fields the webhook reads are declared;
# everything else Telegram sends is ignored.


class TelegramUser(BaseModel):
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None


class TelegramChat(BaseModel):
    id: int


class TelegramPhotoSize(BaseModel):
    file_id: str
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: Optional[int] = None
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    chat: TelegramChat
    text: Optional[str] = None
    caption: Optional[str] = None
    photo: list[TelegramPhotoSize] = Field(default_factory=list)


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    data: Optional[str] = None
    message: Optional[TelegramMessage] = None


class TelegramUpdate(BaseModel):
    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None


# Dashboard API


class AccountCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[str] = Field(default=None, max_length=255)


class AccountOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    telegram_linked: bool
    created_at: datetime


class CategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=500)
    type: TransactionType
    nature: CategoryNatureType = "dynamic"
    budget: Optional[float] = Field(default=None, ge=0)
    payment_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    icon: Optional[str] = Field(default=None, max_length=64)
    color: Optional[str] = Field(default=None, max_length=32)
    is_active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=500)
    type: Optional[TransactionType] = None
    nature: Optional[CategoryNatureType] = None
    budget: Optional[float] = Field(default=None, ge=0)
    payment_due_day: Optional[int] = Field(default=None, ge=1, le=31)
    icon: Optional[str] = Field(default=None, max_length=64)
    color: Optional[str] = Field(default=None, max_length=32)
    is_active: Optional[bool] = None

    @field_validator("name", "description", "type", "nature", "is_active")
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; these columns are NOT NULL.
        if value is None:
            raise ValueError("Field cannot be null.")
        return value


class CategoryOut(CategoryBase):
    id: int
    account_id: str


class TransactionCreate(BaseModel):
    category_id: int
    amount: float = Field(ge=0)
    description: str = Field(default="", max_length=255)
    date: date
    type: TransactionType


class TransactionOut(BaseModel):
    id: int
    account_id: str
    category_id: int
    category_name: str
    amount: float
    description: str
    date: int
    type: TransactionType
    image_url: Optional[str] = None
    receipt_id: Optional[str] = None


class ReceiptOut(BaseModel):
    id: str
    account_id: str
    date: str
    type: TransactionType
    description: str
    category_id: int
    category_name: str
    amount: float
    status: ReceiptStatusType
    image_url: Optional[str] = None


class ReceiptDecision(BaseModel):
    receipt_id: str
    status: Literal["APPROVED", "DISCARDED"]
    transaction_id: Optional[int] = None


class CategorySpending(BaseModel):
    name: str
    amount: float


class SpendingSummaryOut(BaseModel):
    start: int
    end: int
    total_spending: float
    categories: list[CategorySpending]
