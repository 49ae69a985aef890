import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)

from models import BudgetStatus, GoalPriority, GoalStatus, Sexe, TransactionType


FullName = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=2, max_length=100, pattern=r"^[a-zA-Z\s]+$"
    ),
]
Password = Annotated[str, StringConstraints(min_length=6, max_length=72)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]
Description = Annotated[str, StringConstraints(max_length=500)]
HexColor = Annotated[str, StringConstraints(pattern=r"^#[0-9A-Fa-f]{6}$")]
Amount = Annotated[Decimal, Field(ge=Decimal("0.01"), max_digits=15, decimal_places=2)]
Age = Annotated[int, Field(ge=18, le=120)]


class _PartialUpdate(BaseModel):
    @model_validator(mode="after")
    def _require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class RegisterIn(BaseModel):
    fullname: FullName
    email: EmailStr
    password: Password
    sexe: Sexe
    age: Age

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not (
            any(c.islower() for c in value)
            and any(c.isupper() for c in value)
            and any(c.isdigit() for c in value)
        ):
            raise ValueError(
                "Password must contain at least one lowercase letter, "
                "one uppercase letter, and one number"
            )
        return value


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdateIn(_PartialUpdate):
    fullname: Optional[FullName] = None
    email: Optional[EmailStr] = None
    sexe: Optional[Sexe] = None
    age: Optional[Age] = None


class TransactionIn(BaseModel):
    amount: Amount
    description: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)
    ]
    type: TransactionType
    date: date
    category_id: int = Field(..., ge=1)
    notes: Optional[str] = Field(default=None, max_length=1000)


class TransactionUpdateIn(_PartialUpdate):
    amount: Optional[Amount] = None
    description: Optional[
        Annotated[
            str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)
        ]
    ] = None
    type: Optional[TransactionType] = None
    date: Optional[dt.date] = None
    category_id: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = Field(default=None, max_length=1000)


class CategoryIn(BaseModel):
    name: Name
    description: Optional[Description] = None
    type: TransactionType
    color: Optional[HexColor] = None


class CategoryUpdateIn(_PartialUpdate):
    name: Optional[Name] = None
    description: Optional[Description] = None
    type: Optional[TransactionType] = None
    color: Optional[HexColor] = None
    is_active: Optional[bool] = None


class BudgetIn(BaseModel):
    name: Name
    description: Optional[Description] = None
    amount: Amount
    start_date: date
    end_date: date

    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, value: date, info: ValidationInfo) -> date:
        start = info.data.get("start_date")
        if start is not None and value <= start:
            raise ValueError("End date must be after start date")
        return value


class BudgetUpdateIn(_PartialUpdate):
    name: Optional[Name] = None
    description: Optional[Description] = None
    amount: Optional[Amount] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[BudgetStatus] = None

    @field_validator("end_date")
    @classmethod
    def _end_after_start(
        cls, value: Optional[date], info: ValidationInfo
    ) -> Optional[date]:
        start = info.data.get("start_date")
        if value is not None and start is not None and value <= start:
            raise ValueError("End date must be after start date")
        return value


class GoalIn(BaseModel):
    name: Name
    description: Optional[Description] = None
    target_amount: Amount
    current_amount: Annotated[
        Decimal, Field(ge=Decimal("0"), max_digits=15, decimal_places=2)
    ] = Decimal("0")
    target_date: date
    priority: GoalPriority = GoalPriority.medium

    @field_validator("target_date")
    @classmethod
    def _target_date_in_future(cls, value: date) -> date:
        if value <= date.today():
            raise ValueError("Target date must be in the future")
        return value


class GoalUpdateIn(_PartialUpdate):
    name: Optional[Name] = None
    description: Optional[Description] = None
    target_amount: Optional[Amount] = None
    current_amount: Optional[
        Annotated[Decimal, Field(ge=Decimal("0"), max_digits=15, decimal_places=2)]
    ] = None
    target_date: Optional[date] = None
    status: Optional[GoalStatus] = None
    priority: Optional[GoalPriority] = None


class GoalProgressIn(BaseModel):
    amount: Annotated[Decimal, Field(max_digits=15, decimal_places=2)]

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: Decimal) -> Decimal:
        if value == 0:
            raise ValueError("Amount must not be zero")
        return value
