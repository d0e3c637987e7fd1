# fintrack/models.py
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

Money = Numeric(15, 2)

TRANSACTION_TYPES = ("income", "expense", "investment")
GOAL_STATUSES = ("active", "completed")


def _owner_fk():
    return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class TimestampMixin:
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


class User(TimestampMixin, Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    name = Column(String(120))
    avatar = Column(String(500))

    account = relationship("Account", back_populates="user", uselist=False, cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    expenses = relationship("Expense", back_populates="user", cascade="all, delete-orphan")
    incomes = relationship("Income", back_populates="user", cascade="all, delete-orphan")
    investments = relationship("Investment", back_populates="user", cascade="all, delete-orphan")
    budgets = relationship("Budget", back_populates="user", cascade="all, delete-orphan")
    cards = relationship("Card", back_populates="user", cascade="all, delete-orphan")
    savings_goals = relationship("SavingsGoal", back_populates="user", cascade="all, delete-orphan")


class Account(TimestampMixin, Base):
    """Per-user running totals. Derived from the income/expense/investment rows."""
    __tablename__ = "accounts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    total_balance = Column(Money, nullable=False, default=0)
    total_income = Column(Money, nullable=False, default=0)
    total_expense = Column(Money, nullable=False, default=0)
    total_savings = Column(Money, nullable=False, default=0)
    total_invested = Column(Money, nullable=False, default=0)

    user = relationship("User", back_populates="account")


class Transaction(TimestampMixin, Base):
    __tablename__ = "transactions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    title = Column(String(255), nullable=False)
    description = Column(Text)
    date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    amount = Column(Money, nullable=False)
    type = Column(String(20), nullable=False, index=True)  # income | expense | investment
    category = Column(String(100), nullable=False)
    icon = Column(String(16))
    payment_method = Column(String(50))

    user = relationship("User", back_populates="transactions")


class Expense(TimestampMixin, Base):
    __tablename__ = "expenses"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    title = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    payment_method = Column(String(50))
    description = Column(Text)

    user = relationship("User", back_populates="expenses")


class Income(TimestampMixin, Base):
    __tablename__ = "incomes"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    title = Column(String(255), nullable=False)
    source = Column(String(100), nullable=False)
    amount = Column(Money, nullable=False)
    date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    frequency = Column(String(30))
    description = Column(Text)

    user = relationship("User", back_populates="incomes")


class Investment(TimestampMixin, Base):
    __tablename__ = "investments"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    title = Column(String(255), nullable=False)
    area = Column(String(100), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    quantity = Column(Numeric(15, 4))
    purchase_price = Column(Money)
    current_value = Column(Money)
    date = Column(DateTime, nullable=False, default=datetime.now, index=True)
    description = Column(Text)

    user = relationship("User", back_populates="investments")


class Budget(TimestampMixin, Base):
    __tablename__ = "budgets"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    name = Column(String(120), nullable=False)
    category = Column(String(100))
    spent = Column(Money, nullable=False, default=0)
    limit = Column(Money, nullable=False)
    color = Column(String(20), nullable=False, default="#10B981")
    icon = Column(String(16))
    frequency = Column(String(30), nullable=False, default="monthly", index=True)
    month = Column(Integer)
    year = Column(Integer)
    alert_threshold = Column(Integer, nullable=False, default=80)
    followed = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="budgets")


class Card(TimestampMixin, Base):
    __tablename__ = "cards"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    cardholder_name = Column(String(120), nullable=False)
    type = Column(String(30), nullable=False)
    last4 = Column(String(4), nullable=False)
    issuer = Column(String(100))
    expiry_month = Column(Integer)
    expiry_year = Column(Integer)
    limit = Column(Money)
    is_default = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="cards")


class SavingsGoal(TimestampMixin, Base):
    __tablename__ = "savings_goals"
    id = Column(Integer, primary_key=True, index=True)
    user_id = _owner_fk()
    title = Column(String(255), nullable=False)
    description = Column(Text)
    target_amount = Column(Money, nullable=False)
    current_amount = Column(Money, nullable=False, default=0)
    deadline = Column(DateTime)
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="active", index=True)
    category = Column(String(100))
    color = Column(String(20), nullable=False, default="#3B82F6")
    icon = Column(String(16))

    user = relationship("User", back_populates="savings_goals")

    @property
    def progress(self) -> float:
        target = float(self.target_amount or 0)
        if target <= 0:
            return 0.0
        return float(self.current_amount or 0) / target * 100
