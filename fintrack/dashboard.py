# fintrack/dashboard.py
"""
Dashboard read model.

Everything is recomputed from full scans of the user's rows on each call.
The collections are read one after another in the request's session: a
Session must not be shared across threads, and one session gives the whole
view a single consistent snapshot.
The folding helpers below are pure functions of the fetched rows and a
reference ``now``, so they can be exercised without a database.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from . import crud, models, schemas

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
RECENT_FEED_SIZE = 10
TOP_CATEGORIES = 5
CATEGORY_WINDOW_DAYS = 30
SAVINGS_RATE = Decimal("0.10")


# -----------------------------
# Folding helpers
# -----------------------------
def merge_feed(incomes: Iterable, expenses: Iterable, investments: Iterable) -> List[dict]:
    """One feed of all money movements, newest first."""
    feed = []
    for kind, rows, category_attr in (
        ("income", incomes, "source"),
        ("expense", expenses, "category"),
        ("investment", investments, "area"),
    ):
        for row in rows:
            feed.append({
                "id": row.id,
                "title": row.title,
                "category": getattr(row, category_attr),
                "date": row.date,
                "amount": float(row.amount),
                "type": kind,
                "icon": crud.FEED_ICONS[kind],
            })
    feed.sort(key=lambda item: item["date"], reverse=True)
    for item in feed:
        item["date"] = item["date"].date().isoformat()
    return feed


def total(rows: Iterable) -> Decimal:
    return sum((row.amount for row in rows), Decimal("0.00"))


def recommended_savings(balance_left: Decimal) -> float:
    return float(crud.to_money(max(Decimal("0"), balance_left * SAVINGS_RATE)))


def weekly_stats(incomes: Iterable, expenses: Iterable, today: date) -> List[dict]:
    """
    Net income per calendar day for the seven days ending ``today``, oldest first.

    Days where expenses outweigh income report 0.
    """
    flows = [(row.date.date(), float(row.amount)) for row in incomes]
    flows += [(row.date.date(), -float(row.amount)) for row in expenses]
    frame = pd.DataFrame(flows, columns=["day", "amount"])
    daily = frame.groupby("day")["amount"].sum()

    stats = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        net = float(daily.get(day, 0.0))
        stats.append({"day": WEEKDAY_LABELS[day.weekday()], "amount": round(max(0.0, net), 2)})
    return stats


def category_stats(expenses: Iterable, now: datetime) -> List[dict]:
    """Top spending categories over the last 30 days, largest first."""
    cutoff = now - timedelta(days=CATEGORY_WINDOW_DAYS)
    frame = pd.DataFrame(
        [(row.category, float(row.amount)) for row in expenses if row.date >= cutoff],
        columns=["category", "amount"],
    )
    if frame.empty:
        return []
    totals = (
        frame.groupby("category")["amount"]
        .sum()
        .sort_values(ascending=False, kind="stable")
        .head(TOP_CATEGORIES)
    )
    return [{"name": name, "value": round(float(value), 2)} for name, value in totals.items()]


def goal_summary(goals: Iterable) -> dict:
    goals = list(goals)
    return {
        "savingsGoals": [
            schemas.SavingsGoalOut.model_validate(g).model_dump(by_alias=True, mode="json") for g in goals
        ],
        "totalSaved": float(sum((g.current_amount for g in goals), Decimal("0.00"))),
        "totalTarget": float(sum((g.target_amount for g in goals), Decimal("0.00"))),
    }


# -----------------------------
# Assembler
# -----------------------------
def _all(db: Session, model, user_id: int, *extra_filters):
    return (
        db.query(model)
        .filter(model.user_id == user_id, *extra_filters)
        .order_by(*crud.default_ordering(model))
        .all()
    )


def _dump(schema, rows) -> List[dict]:
    return [schema.model_validate(r).model_dump(by_alias=True, mode="json") for r in rows]


def assemble(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now()
    account = crud.get_account(db, user_id)
    ledger = schemas.AccountOut.model_validate(account) if account else schemas.AccountOut()

    incomes = _all(db, models.Income, user_id)
    expenses = _all(db, models.Expense, user_id)
    investments = _all(db, models.Investment, user_id)
    budgets = _all(db, models.Budget, user_id)
    cards = _all(db, models.Card, user_id)
    goals = _all(db, models.SavingsGoal, user_id, models.SavingsGoal.status == "active")

    feed = merge_feed(incomes, expenses, investments)

    income_sum = total(incomes)
    expense_sum = total(expenses)
    investment_sum = total(investments)
    balance_left = income_sum - expense_sum - investment_sum

    view = ledger.model_dump(by_alias=True)
    view.update({
        "cards": _dump(schemas.CardOut, cards),
        "transactions": feed[:RECENT_FEED_SIZE],
        "allTransactions": feed,
        "budgets": _dump(schemas.BudgetOut, budgets),
        "expenses": _dump(schemas.ExpenseOut, expenses),
        "investments": _dump(schemas.InvestmentOut, investments),
        "totalIncomeSum": float(income_sum),
        "totalExpenseSum": float(expense_sum),
        "totalInvestmentSum": float(investment_sum),
        "balanceLeft": float(balance_left),
        "recommendedSavings": recommended_savings(balance_left),
        "weeklyStats": weekly_stats(incomes, expenses, now.date()),
        "categoryStats": category_stats(expenses, now),
    })
    view.update(goal_summary(goals))
    return view
