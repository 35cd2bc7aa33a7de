from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import AccountType, CategoryType, TransactionType


def _lower(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class TransactionIn(BaseModel):
    """Create payload; rule checks live in TransactionValidator so they can be
    reported together instead of failing on the first bad field."""

    account_id: Optional[int] = None
    category_id: Optional[int] = None
    type: Optional[str] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    transaction_date: Optional[Union[date, str]] = None
    transfer_account_id: Optional[int] = None
    reference_number: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    tags: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return _lower(value)


class TransactionUpdate(BaseModel):
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    type: Optional[str] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    transaction_date: Optional[Union[date, str]] = None
    transfer_account_id: Optional[int] = None
    reference_number: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    tags: Optional[list[str]] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return _lower(value)


class QuickEntryIn(BaseModel):
    amount: Decimal
    description: str
    category_id: int
    account_id: Optional[int] = None


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType
    bank_name: Optional[str] = Field(default=None, max_length=100)
    account_number_last_four: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    initial_balance: Decimal = Decimal("0")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    color: str = Field(default="#6366f1", max_length=7)
    icon: str = Field(default="credit_card", max_length=50)
    is_default: bool = False
    notes: Optional[str] = None

    @field_validator("account_type", mode="before")
    @classmethod
    def normalize_account_type(cls, value):
        return _lower(value)


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    account_type: Optional[AccountType] = None
    bank_name: Optional[str] = Field(default=None, max_length=100)
    account_number_last_four: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=50)
    is_default: Optional[bool] = None
    active: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("account_type", mode="before")
    @classmethod
    def normalize_account_type(cls, value):
        return _lower(value)


class BalanceIn(BaseModel):
    balance: Decimal


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    description: Optional[str] = None
    color: str = Field(default="#6366f1", max_length=7)
    icon: str = Field(default="folder", max_length=50)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return _lower(value)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    type: Optional[CategoryType] = None
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, max_length=7)
    icon: Optional[str] = Field(default=None, max_length=50)
    active: Optional[bool] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        return _lower(value)


class RegisterIn(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=100)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    created_at: datetime
    updated_at: datetime


class AuthOut(BaseModel):
    user: UserOut
    token: str


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    account_type: AccountType
    bank_name: Optional[str]
    account_number_last_four: Optional[str]
    initial_balance: Decimal
    current_balance: Decimal
    currency: str
    color: str
    icon: str
    active: bool
    is_default: bool
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    description: Optional[str]
    color: str
    icon: str
    type: CategoryType
    active: bool
    created_at: datetime
    updated_at: datetime


class AccountSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    account_type: AccountType
    color: str


class CategorySnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: str
    icon: str


class TransferAccountSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    account_id: int
    category_id: int
    type: TransactionType
    amount: Decimal
    description: str
    notes: Optional[str]
    transaction_date: date
    transfer_account_id: Optional[int]
    transfer_transaction_id: Optional[int]
    reference_number: Optional[str]
    location: Optional[str]
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    account: AccountSnapshot
    category: CategorySnapshot
    transfer_account: Optional[TransferAccountSnapshot] = None
