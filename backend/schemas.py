from pydantic import AliasChoices, BaseModel, Field, computed_field, field_validator, model_validator
from decimal import Decimal
from datetime import datetime
from typing import Optional

from models import Category
from pricing import effective_amount, to_cents
from security import MAX_PASSWORD_BYTES


def _coerce_category(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


class Credentials(BaseModel):
    username: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def username_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username cannot be blank or whitespace")
        return v.strip()


class RegisterRequest(Credentials):
    @field_validator("password")
    @classmethod
    def password_must_fit_bcrypt(cls, v: str) -> str:
        if len(v.encode()) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class UserPublic(BaseModel):
    id: str
    username: str

    model_config = {"from_attributes": True}


class CurrentUserResponse(BaseModel):
    user: UserPublic


class MessageResponse(BaseModel):
    message: str


class ExpenseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    category: Category
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit amount")
    quantity: int = Field(default=1, ge=1)
    is_recurring: bool = Field(default=False, validation_alias=AliasChoices("is_recurring", "isRecurring"))
    tax_percent: Decimal = Field(
        default=Decimal("0"), ge=0, le=100, decimal_places=2,
        validation_alias=AliasChoices("tax_percent", "taxPercent"),
    )
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100, decimal_places=2)

    # Unknown keys are a 400, never ignored
    model_config = {"extra": "forbid"}

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title cannot be blank or whitespace")
        return v.strip()

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        return _coerce_category(v)


class ExpenseUpdate(BaseModel):
    """Partial update: only the fields present in the request body are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[Category] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    quantity: Optional[int] = Field(default=None, ge=1)
    is_recurring: Optional[bool] = Field(default=None, validation_alias=AliasChoices("is_recurring", "isRecurring"))
    tax_percent: Optional[Decimal] = Field(
        default=None, ge=0, le=100, decimal_places=2,
        validation_alias=AliasChoices("tax_percent", "taxPercent"),
    )
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100, decimal_places=2)

    model_config = {"extra": "forbid"}

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be blank or whitespace")
        return v.strip() if v is not None else v

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        return _coerce_category(v)

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulls = sorted(name for name in self.model_fields_set if getattr(self, name) is None)
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ExpenseResponse(BaseModel):
    id: str
    title: str
    category: Category
    amount: Decimal
    quantity: int
    is_recurring: bool
    tax_percent: Decimal
    discount: Decimal
    created_at: datetime
    user_id: str

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def effective_amount(self) -> Decimal:
        return to_cents(effective_amount(self.amount, self.quantity, self.discount, self.tax_percent))


class CategoryTotal(BaseModel):
    category: Category
    total: Decimal
    count: int


class ExpenseSummary(BaseModel):
    total: Decimal
    count: int
    by_category: list[CategoryTotal]
