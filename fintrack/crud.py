# fintrack/crud.py
import math
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger
from .security import hash_password, verify_password

log = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# largest value a Numeric(15, 2) column holds
MAX_MONEY = Decimal("9999999999999.99")

FEED_ICONS = {"income": "📥", "expense": "📤", "investment": "📈"}

# ledger column -> sign, per record kind
LEDGER_EFFECTS = {
    "income": (("total_income", 1), ("total_balance", 1)),
    "expense": (("total_expense", 1), ("total_balance", -1)),
    "investment": (("total_invested", 1), ("total_balance", -1)),
}


def to_money(value) -> Decimal:
    try:
        money = Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Amount is out of range") from None
    if abs(money) > MAX_MONEY:
        raise ValidationError("Amount is out of range")
    return money


@contextmanager
def unit_of_work(db: Session):
    """Commit everything done inside the block at once, or nothing."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _require(fields: dict, names: Iterable[str], message: str):
    if any(fields.get(n) is None for n in names):
        raise ValidationError(message)


def _require_positive(fields: dict, name: str, message: str):
    value = fields.get(name)
    if value is not None and value <= 0:
        raise ValidationError(message)


def _apply(row, fields: dict):
    for key, value in fields.items():
        setattr(row, key, value)


# -----------------------------
# Pagination
# -----------------------------
def normalize_page(page: Optional[int], limit: Optional[int], default_limit: int = 10) -> Tuple[int, int]:
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


def default_ordering(model):
    order = []
    if model is models.Card:
        order.append(models.Card.is_default.desc())
    if hasattr(model, "date"):
        order.append(model.date.desc())
    else:
        order.append(model.created_at.desc())
    order.append(model.id.desc())
    return order


def list_records(db: Session, model, user_id: int, page: int, limit: int, filters: Optional[dict] = None):
    query = db.query(model).filter(model.user_id == user_id)
    for column, value in (filters or {}).items():
        if value:
            query = query.filter(getattr(model, column) == value)
    total = query.count()
    items = query.order_by(*default_ordering(model)).offset((page - 1) * limit).limit(limit).all()
    return items, total


def get_owned(db: Session, model, item_id: int, user_id: int, label: str):
    row = db.query(model).filter(model.id == item_id, model.user_id == user_id).first()
    if row is None:
        raise NotFoundError(f"{label} not found")
    return row


# -----------------------------
# User CRUD
# -----------------------------
def _new_account(user_id: int) -> models.Account:
    return models.Account(
        user_id=user_id,
        total_balance=ZERO,
        total_income=ZERO,
        total_expense=ZERO,
        total_savings=ZERO,
        total_invested=ZERO,
    )


def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, email: Optional[str], password: Optional[str], name: Optional[str] = None):
    if not email or not password:
        raise ValidationError("Email and password are required")
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ConflictError("User already exists with this email")

    user = models.User(email=email, password=hash_password(password), name=name or email.split("@")[0])
    try:
        with unit_of_work(db):
            db.add(user)
            db.flush()
            db.add(_new_account(user.id))
    except IntegrityError:
        raise ConflictError("User already exists with this email")
    db.refresh(user)
    log.info("user_registered", user_id=user.id)
    return user


def authenticate_user(db: Session, email: Optional[str], password: Optional[str]):
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = get_user_by_email(db, email.strip().lower())
    if not user or not verify_password(password, user.password):
        raise AuthError("Invalid email or password")
    return user


def update_profile(db: Session, user_id: int, fields: dict):
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    with unit_of_work(db):
        _apply(user, {k: v for k, v in fields.items() if k in ("name", "avatar")})
    db.refresh(user)
    return user


# -----------------------------
# Account ledger
# -----------------------------
def get_account(db: Session, user_id: int):
    return db.query(models.Account).filter(models.Account.user_id == user_id).first()


def get_or_create_account(db: Session, user_id: int):
    """Backfill the ledger row for users registered before it existed."""
    account = get_account(db, user_id)
    if account is None:
        account = _new_account(user_id)
        db.add(account)
        db.flush()
        log.info("ledger_backfilled", user_id=user_id)
    return account


def apply_ledger_delta(account: models.Account, kind: str, amount: Decimal):
    """
    Shift the running totals for ``kind`` by ``amount`` (negative to reverse).

    The change is an in-database increment, written when the session flushes.
    """
    if not amount:
        return
    for column, sign in LEDGER_EFFECTS[kind]:
        setattr(account, column, getattr(models.Account, column) + sign * amount)
    log.debug("ledger_delta", user_id=account.user_id, kind=kind, amount=str(amount))


def _create_ledgered(db: Session, user_id: int, model, kind: str, fields: dict):
    row = model(user_id=user_id, **fields)
    with unit_of_work(db):
        db.add(row)
        account = get_or_create_account(db, user_id)
        apply_ledger_delta(account, kind, row.amount)
    db.refresh(row)
    log.info("record_created", kind=kind, user_id=user_id, id=row.id)
    return row


def _update_ledgered(db: Session, row, kind: str, fields: dict):
    with unit_of_work(db):
        if "amount" in fields and fields["amount"] != row.amount:
            account = get_account(db, row.user_id)
            if account is not None:
                apply_ledger_delta(account, kind, fields["amount"] - row.amount)
        _apply(row, fields)
    db.refresh(row)
    return row


def _delete_ledgered(db: Session, row, kind: str):
    with unit_of_work(db):
        account = get_account(db, row.user_id)
        if account is not None:
            apply_ledger_delta(account, kind, -row.amount)
        db.delete(row)
    log.info("record_deleted", kind=kind, user_id=row.user_id, id=row.id)


def _amount_fields(fields: dict, *names: str) -> dict:
    for name in names:
        if fields.get(name) is not None:
            fields[name] = to_money(fields[name])
    return fields


# -----------------------------
# Incomes
# -----------------------------
def create_income(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "amount")
    _require(fields, ("title", "source", "amount"), "Title, source, and amount are required")
    _require_positive(fields, "amount", "Amount must be greater than 0")
    return _create_ledgered(db, user_id, models.Income, "income", fields)


def update_income(db: Session, income_id: int, user_id: int, fields: dict):
    income = get_owned(db, models.Income, income_id, user_id, "Income")
    fields = _amount_fields(dict(fields), "amount")
    _require_positive(fields, "amount", "Amount must be greater than 0")
    return _update_ledgered(db, income, "income", fields)


def delete_income(db: Session, income_id: int, user_id: int):
    income = get_owned(db, models.Income, income_id, user_id, "Income")
    _delete_ledgered(db, income, "income")


# -----------------------------
# Expenses
# -----------------------------
def create_expense(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "amount")
    _require(fields, ("title", "category", "amount"), "Title, category, and amount are required")
    _require_positive(fields, "amount", "Amount must be greater than 0")
    return _create_ledgered(db, user_id, models.Expense, "expense", fields)


def update_expense(db: Session, expense_id: int, user_id: int, fields: dict):
    expense = get_owned(db, models.Expense, expense_id, user_id, "Expense")
    fields = _amount_fields(dict(fields), "amount")
    _require_positive(fields, "amount", "Amount must be greater than 0")
    return _update_ledgered(db, expense, "expense", fields)


def delete_expense(db: Session, expense_id: int, user_id: int):
    expense = get_owned(db, models.Expense, expense_id, user_id, "Expense")
    _delete_ledgered(db, expense, "expense")


# -----------------------------
# Investments
# -----------------------------
INVESTMENT_NUMBERS = (
    ("amount", "Amount must be greater than 0"),
    ("quantity", "Quantity must be greater than 0"),
    ("purchase_price", "Purchase price must be greater than 0"),
    ("current_value", "Current value must be greater than 0"),
)


def create_investment(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "amount", "purchase_price", "current_value")
    _require(fields, ("title", "area", "amount"), "Title, area, and amount are required")
    for name, message in INVESTMENT_NUMBERS:
        _require_positive(fields, name, message)
    fields.setdefault("current_value", fields["amount"])
    return _create_ledgered(db, user_id, models.Investment, "investment", fields)


def update_investment(db: Session, investment_id: int, user_id: int, fields: dict):
    investment = get_owned(db, models.Investment, investment_id, user_id, "Investment")
    fields = _amount_fields(dict(fields), "amount", "purchase_price", "current_value")
    for name, message in INVESTMENT_NUMBERS:
        _require_positive(fields, name, message)
    return _update_ledgered(db, investment, "investment", fields)


def delete_investment(db: Session, investment_id: int, user_id: int):
    investment = get_owned(db, models.Investment, investment_id, user_id, "Investment")
    _delete_ledgered(db, investment, "investment")


# -----------------------------
# Transactions (standalone, no ledger effect)
# -----------------------------
def create_transaction(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "amount")
    _require(fields, ("title", "category", "amount", "type"), "Missing required fields")
    _require_positive(fields, "amount", "Amount must be greater than 0")
    if fields["type"] not in models.TRANSACTION_TYPES:
        raise ValidationError("Type must be one of: " + ", ".join(models.TRANSACTION_TYPES))
    fields.setdefault("icon", FEED_ICONS[fields["type"]])
    tx = models.Transaction(user_id=user_id, **fields)
    with unit_of_work(db):
        db.add(tx)
    db.refresh(tx)
    return tx


# -----------------------------
# Budgets
# -----------------------------
def _check_budget_numbers(fields: dict):
    _require_positive(fields, "limit", "Limit must be greater than 0")
    if fields.get("spent") is not None and fields["spent"] < 0:
        raise ValidationError("Spent cannot be negative")
    threshold = fields.get("alert_threshold")
    if threshold is not None and not 0 < threshold <= 100:
        raise ValidationError("Alert threshold must be between 1 and 100")


def create_budget(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "limit", "spent")
    _require(fields, ("name", "limit"), "Name and limit are required")
    _check_budget_numbers(fields)
    fields.setdefault("color", "#10B981")
    fields.setdefault("frequency", "monthly")
    fields.setdefault("alert_threshold", 80)
    fields.setdefault("spent", ZERO)
    fields.setdefault("followed", False)
    budget = models.Budget(user_id=user_id, **fields)
    with unit_of_work(db):
        db.add(budget)
    db.refresh(budget)
    return budget


def update_budget(db: Session, budget_id: int, user_id: int, fields: dict):
    budget = get_owned(db, models.Budget, budget_id, user_id, "Budget")
    fields = _amount_fields(dict(fields), "limit", "spent")
    _check_budget_numbers(fields)
    with unit_of_work(db):
        _apply(budget, fields)
    db.refresh(budget)
    return budget


def delete_budget(db: Session, budget_id: int, user_id: int):
    budget = get_owned(db, models.Budget, budget_id, user_id, "Budget")
    with unit_of_work(db):
        db.delete(budget)


# -----------------------------
# Cards
# -----------------------------
def _check_card(fields: dict):
    if fields.get("last4") is not None:
        last4 = str(fields["last4"]).strip()[-4:]
        if len(last4) != 4 or not last4.isdigit():
            raise ValidationError("last4 must be exactly 4 digits")
        fields["last4"] = last4
    _require_positive(fields, "limit", "Card limit must be greater than 0")
    month = fields.get("expiry_month")
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("Expiry month must be between 1 and 12")


def _clear_default_cards(db: Session, user_id: int, keep_id: Optional[int] = None):
    query = db.query(models.Card).filter(models.Card.user_id == user_id, models.Card.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(models.Card.id != keep_id)
    query.update({models.Card.is_default: False}, synchronize_session="fetch")


def create_card(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "limit")
    _require(fields, ("type", "last4", "cardholder_name"), "Type, last4, and cardholder name are required")
    _check_card(fields)
    fields.setdefault("issuer", "Unknown")
    fields.setdefault("is_default", False)
    card = models.Card(user_id=user_id, **fields)
    with unit_of_work(db):
        if card.is_default:
            _clear_default_cards(db, user_id)
        db.add(card)
    db.refresh(card)
    return card


def update_card(db: Session, card_id: int, user_id: int, fields: dict):
    card = get_owned(db, models.Card, card_id, user_id, "Card")
    fields = _amount_fields(dict(fields), "limit")
    _check_card(fields)
    with unit_of_work(db):
        if fields.get("is_default"):
            _clear_default_cards(db, user_id, keep_id=card.id)
        _apply(card, fields)
    db.refresh(card)
    return card


def delete_card(db: Session, card_id: int, user_id: int):
    card = get_owned(db, models.Card, card_id, user_id, "Card")
    with unit_of_work(db):
        db.delete(card)


# -----------------------------
# Savings goals
# -----------------------------
def _check_goal(fields: dict):
    _require_positive(fields, "target_amount", "Target amount must be greater than 0")
    if fields.get("current_amount") is not None and fields["current_amount"] < 0:
        raise ValidationError("Current amount cannot be negative")
    if fields.get("status") is not None and fields["status"] not in models.GOAL_STATUSES:
        raise ValidationError("Status must be one of: " + ", ".join(models.GOAL_STATUSES))


def create_goal(db: Session, user_id: int, fields: dict):
    fields = _amount_fields(dict(fields), "target_amount", "current_amount")
    _require(fields, ("title", "target_amount"), "Title and target amount are required")
    _check_goal(fields)
    fields.setdefault("current_amount", ZERO)
    fields.setdefault("priority", "medium")
    fields.setdefault("category", "General")
    fields.setdefault("icon", "🎯")
    fields.setdefault("color", "#3B82F6")
    fields["status"] = "active"
    goal = models.SavingsGoal(user_id=user_id, **fields)
    with unit_of_work(db):
        db.add(goal)
    db.refresh(goal)
    return goal


def update_goal(db: Session, goal_id: int, user_id: int, fields: dict):
    goal = get_owned(db, models.SavingsGoal, goal_id, user_id, "Savings goal")
    fields = _amount_fields(dict(fields), "target_amount", "current_amount")
    _check_goal(fields)
    with unit_of_work(db):
        _apply(goal, fields)
    db.refresh(goal)
    return goal


def _positive_amount(amount) -> Decimal:
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    return to_money(amount)


def contribute_to_goal(db: Session, goal_id: int, user_id: int, amount):
    """Add to the goal; the goal is completed once it reaches its target, active otherwise."""
    amount = _positive_amount(amount)
    goal = get_owned(db, models.SavingsGoal, goal_id, user_id, "Savings goal")
    new_amount = goal.current_amount + amount
    is_complete = new_amount >= goal.target_amount
    with unit_of_work(db):
        goal.current_amount = new_amount
        goal.status = "completed" if is_complete else "active"
    db.refresh(goal)
    return goal, is_complete


def withdraw_from_goal(db: Session, goal_id: int, user_id: int, amount, reopen: bool = False):
    """
    Take money out of the goal, never below zero.

    Status is left alone unless ``reopen`` is set, in which case a goal that
    drops under its target goes back to active.
    """
    amount = _positive_amount(amount)
    goal = get_owned(db, models.SavingsGoal, goal_id, user_id, "Savings goal")
    new_amount = max(ZERO, goal.current_amount - amount)
    with unit_of_work(db):
        goal.current_amount = new_amount
        if reopen and new_amount < goal.target_amount:
            goal.status = "active"
    db.refresh(goal)
    return goal


def delete_goal(db: Session, goal_id: int, user_id: int):
    goal = get_owned(db, models.SavingsGoal, goal_id, user_id, "Savings goal")
    with unit_of_work(db):
        db.delete(goal)
