import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import Theme, TransactionType

ICON_OPTIONS = (
    "Briefcase",
    "Laptop",
    "TrendingUp",
    "UtensilsCrossed",
    "Car",
    "Home",
    "Gamepad2",
    "Heart",
    "GraduationCap",
    "ShoppingBag",
    "Plane",
    "Music",
    "Dumbbell",
    "Gift",
)

COLOR_OPTIONS = (
    "hsl(152, 60%, 42%)",
    "hsl(170, 55%, 40%)",
    "hsl(200, 60%, 45%)",
    "hsl(0, 72%, 51%)",
    "hsl(30, 80%, 50%)",
    "hsl(260, 55%, 55%)",
    "hsl(320, 60%, 50%)",
    "hsl(350, 70%, 55%)",
    "hsl(220, 70%, 50%)",
    "hsl(38, 92%, 50%)",
)

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def _check_icon(value: str) -> str:
    if value not in ICON_OPTIONS:
        raise ValueError(f"Unknown icon '{value}'")
    return value


def _check_email(value: str) -> str:
    clean = value.strip()
    if "@" not in clean or clean.startswith("@") or clean.endswith("@"):
        raise ValueError("Invalid email address")
    return clean


# Domain entities, persisted as one JSON document per account.


class Category(BaseModel):
    id: str
    name: str
    icon: str = ICON_OPTIONS[0]
    color: str = COLOR_OPTIONS[0]
    type: TransactionType


class Transaction(BaseModel):
    id: str
    type: TransactionType
    category_id: str
    description: str
    amount_cents: int = Field(..., ge=0)
    date: dt.date
    card_id: Optional[str] = None


class MonthlyGoal(BaseModel):
    month: str = Field(..., pattern=MONTH_PATTERN)
    amount_cents: int = Field(0, ge=0)


class CreditCard(BaseModel):
    id: str
    name: str
    holder: str
    due_day: int = Field(..., ge=1, le=31)
    limit_cents: Optional[int] = Field(default=None, ge=0)


class UserProfile(BaseModel):
    name: str
    email: str
    avatar: Optional[str] = None


class UserAccount(BaseModel):
    id: str
    name: str
    email: str
    password_hash: str
    avatar: Optional[str] = None
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    goal: MonthlyGoal
    cards: list[CreditCard] = Field(default_factory=list)
    theme: Theme = Theme.light

    def profile(self) -> UserProfile:
        return UserProfile(name=self.name, email=self.email, avatar=self.avatar)


class AccountOut(BaseModel):
    """Account as exposed over HTTP; never carries the password hash."""

    id: str
    name: str
    email: str
    avatar: Optional[str] = None
    theme: Theme

    @classmethod
    def from_account(cls, account: UserAccount) -> "AccountOut":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            avatar=account.avatar,
            theme=account.theme,
        )


# Inputs


class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=4, max_length=128)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)


class LoginIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=128)


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: TransactionType
    category_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(..., ge=0)
    date: dt.date
    card_id: Optional[str] = None


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = ICON_OPTIONS[0]
    color: str = Field(COLOR_OPTIONS[0], min_length=1, max_length=40)
    type: TransactionType

    @field_validator("icon")
    @classmethod
    def check_icon(cls, value: str) -> str:
        return _check_icon(value)


class CardIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    holder: str = Field(..., min_length=1, max_length=100)
    due_day: int = Field(..., ge=1, le=31)
    limit_cents: Optional[int] = Field(default=None, ge=0)


class GoalIn(BaseModel):
    amount_cents: int = Field(..., ge=0)


class ProfileIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)


class ThemeIn(BaseModel):
    theme: Theme


class CardCSVRow(BaseModel):
    date: dt.date
    description: str
    amount_cents: int = Field(..., ge=0)
    category: Optional[str] = None
