# fintrack/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Tuple

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, EmailStr, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel


def parse_when(value: Any) -> Optional[datetime]:
    """Accept ISO strings and the looser formats dateutil understands; store local naive time."""
    if value is None or isinstance(value, datetime):
        dt = value
    else:
        dt = date_parser.parse(str(value))
    if dt is not None and dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def parse_expiry(text: str) -> Tuple[Optional[int], Optional[int]]:
    """
    Split a combined card expiry ("MM/YY" or "MM/YYYY") into month and year.

    Two-digit years are taken as 2000+YY. Unparsable parts come back as None.
    """
    parts = [p.strip() for p in str(text).split("/")]
    if len(parts) != 2:
        return None, None
    try:
        month = int(parts[0])
    except ValueError:
        month = None
    try:
        year = int(parts[1])
    except ValueError:
        year = None
    if year is not None and year < 100:
        year += 2000
    return month, year


# -----------------------------
# Base models
# -----------------------------
class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PayloadModel(CamelModel):
    """Request body. Every field is optional; the store decides what is required."""

    @model_validator(mode="before")
    @classmethod
    def blank_to_none(cls, data):
        if isinstance(data, dict):
            return {k: (None if isinstance(v, str) and not v.strip() else v) for k, v in data.items()}
        return data

    def patch(self) -> dict:
        """Fields the caller actually sent, without nulls."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class DatedPayload(PayloadModel):
    date: Optional[datetime] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_when(v)


class OutModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -----------------------------
# User Schemas
# -----------------------------
class RegisterIn(PayloadModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginIn(PayloadModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(PayloadModel):
    name: Optional[str] = None
    avatar: Optional[str] = None


class UserOut(OutModel):
    id: int
    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class AccountOut(OutModel):
    total_balance: float = 0.0
    total_income: float = 0.0
    total_expense: float = 0.0
    total_savings: float = 0.0
    total_invested: float = 0.0


class ProfileOut(UserOut):
    account: Optional[AccountOut] = None


# -----------------------------
# Income / Expense / Investment Schemas
# -----------------------------
class IncomeIn(DatedPayload):
    title: Optional[str] = None
    source: Optional[str] = None
    amount: Optional[Decimal] = None
    frequency: Optional[str] = None
    description: Optional[str] = None


class IncomeOut(OutModel):
    id: int
    user_id: int
    title: str
    source: str
    amount: float
    date: datetime
    frequency: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExpenseIn(DatedPayload):
    title: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None


class ExpenseOut(OutModel):
    id: int
    user_id: int
    title: str
    category: str
    amount: float
    date: datetime
    payment_method: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InvestmentIn(DatedPayload):
    title: Optional[str] = None
    area: Optional[str] = None
    amount: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    purchase_price: Optional[Decimal] = None
    current_value: Optional[Decimal] = None
    description: Optional[str] = None


class InvestmentOut(OutModel):
    id: int
    user_id: int
    title: str
    area: str
    amount: float
    quantity: Optional[float] = None
    purchase_price: Optional[float] = None
    current_value: Optional[float] = None
    date: datetime
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# -----------------------------
# Transaction Schemas
# -----------------------------
class TransactionIn(DatedPayload):
    title: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    type: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None


class TransactionOut(OutModel):
    id: int
    title: str
    category: str
    date: datetime
    amount: float
    type: str
    icon: Optional[str] = None
    description: Optional[str] = None
    payment_method: Optional[str] = None

    @field_serializer("date")
    def _day_only(self, value: datetime) -> str:
        return value.date().isoformat()


# -----------------------------
# Budget Schemas
# -----------------------------
class BudgetIn(PayloadModel):
    name: Optional[str] = None
    category: Optional[str] = None
    limit: Optional[Decimal] = None
    spent: Optional[Decimal] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    frequency: Optional[str] = None
    month: Optional[int] = None
    year: Optional[int] = None
    alert_threshold: Optional[int] = None
    followed: Optional[bool] = None


class BudgetOut(OutModel):
    id: int
    name: str
    category: Optional[str] = None
    spent: float
    limit: float
    color: str
    icon: Optional[str] = None
    frequency: str
    month: Optional[int] = None
    year: Optional[int] = None
    alert_threshold: int
    followed: bool
    created_at: datetime


# -----------------------------
# Card Schemas
# -----------------------------
class CardIn(PayloadModel):
    """
    Canonical card payload.

    Some clients send ``cardType`` instead of ``type`` and a combined
    ``expiryDate`` ("MM/YY" or "MM/YYYY") instead of ``expiryMonth`` and
    ``expiryYear``. Both shapes are folded into the canonical fields here,
    before anything else sees the payload.
    """
    type: Optional[str] = None
    issuer: Optional[str] = None
    last4: Optional[str] = None
    cardholder_name: Optional[str] = None
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    limit: Optional[Decimal] = None
    is_default: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_shape(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        card_type = data.pop("cardType", None)
        if card_type and not data.get("type"):
            data["type"] = str(card_type)
        expiry = data.pop("expiryDate", None)
        if isinstance(expiry, str):
            month, year = parse_expiry(expiry)
            if month is not None:
                data["expiryMonth"] = month
            if year is not None:
                data["expiryYear"] = year
        if isinstance(data.get("last4"), int) and not isinstance(data.get("last4"), bool):
            data["last4"] = str(data["last4"])
        return data


class CardOut(OutModel):
    id: int
    type: str
    issuer: Optional[str] = None
    last4: str
    cardholder_name: str
    expiry_month: Optional[int] = None
    expiry_year: Optional[int] = None
    limit: Optional[float] = None
    is_default: bool
    created_at: datetime


# -----------------------------
# Savings Goal Schemas
# -----------------------------
class SavingsGoalIn(PayloadModel):
    title: Optional[str] = None
    target_amount: Optional[Decimal] = None
    current_amount: Optional[Decimal] = None
    deadline: Optional[datetime] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def _parse_deadline(cls, v):
        return parse_when(v)


class AmountIn(PayloadModel):
    amount: Optional[Decimal] = None


class SavingsGoalOut(OutModel):
    id: int
    title: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float
    deadline: Optional[datetime] = None
    priority: str
    status: str
    category: Optional[str] = None
    color: str
    icon: Optional[str] = None
    progress: float
    created_at: datetime
    updated_at: datetime
