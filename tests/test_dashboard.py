"""Tests for the dashboard folds and the assembled dashboard view."""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from fintrack import dashboard

NOW = datetime(2026, 10, 19, 12, 0)  # a Monday


def row(id, amount, when, **extra):
    return SimpleNamespace(id=id, title=f"row {id}", amount=Decimal(str(amount)), date=when, **extra)


class TestMergeFeed:
    """Combined income, expense and investment feed."""

    def test_newest_first_with_type_and_icon(self):
        incomes = [row(1, 500, datetime(2026, 10, 1), source="Employer")]
        expenses = [row(2, 20, datetime(2026, 10, 5), category="Food")]
        investments = [row(3, 100, datetime(2026, 10, 3), area="Stocks")]

        feed = dashboard.merge_feed(incomes, expenses, investments)
        assert [(f["type"], f["date"]) for f in feed] == [
            ("expense", "2026-10-05"),
            ("investment", "2026-10-03"),
            ("income", "2026-10-01"),
        ]
        assert feed[0]["category"] == "Food"
        assert feed[0]["icon"] == "📤"
        assert feed[2]["amount"] == 500.0

    def test_empty(self):
        assert dashboard.merge_feed([], [], []) == []


class TestWeeklyStats:
    """Seven day net income series."""

    def test_seven_days_oldest_first(self):
        stats = dashboard.weekly_stats([], [], date(2026, 10, 19))
        assert [s["day"] for s in stats] == ["Tue", "Wed", "Thu", "Fri", "Sat", "Sun", "Mon"]
        assert all(s["amount"] == 0 for s in stats)

    def test_net_per_day_floored_at_zero(self):
        """Days where spending beats income report zero."""
        incomes = [row(1, 100, datetime(2026, 10, 19, 9)), row(2, 50, datetime(2026, 10, 17))]
        expenses = [row(3, 30, datetime(2026, 10, 19, 18)), row(4, 80, datetime(2026, 10, 17))]

        stats = dashboard.weekly_stats(incomes, expenses, date(2026, 10, 19))
        by_day = {s["day"]: s["amount"] for s in stats}
        assert by_day["Mon"] == 70.0
        assert by_day["Sat"] == 0.0

    def test_rows_outside_the_window_ignored(self):
        incomes = [row(1, 100, datetime(2026, 10, 12))]
        stats = dashboard.weekly_stats(incomes, [], date(2026, 10, 19))
        assert sum(s["amount"] for s in stats) == 0


class TestCategoryStats:
    """Top spending categories."""

    def test_top_five_in_last_thirty_days(self):
        expenses = [
            row(i, amount, datetime(2026, 10, 10), category=name)
            for i, (name, amount) in enumerate(
                [("Food", 50), ("Rent", 900), ("Fun", 20), ("Bus", 15), ("Gym", 30), ("Books", 10), ("Food", 25)]
            )
        ]
        expenses.append(row(99, 5000, datetime(2026, 8, 1), category="Holiday"))

        stats = dashboard.category_stats(expenses, NOW)
        assert stats == [
            {"name": "Rent", "value": 900.0},
            {"name": "Food", "value": 75.0},
            {"name": "Gym", "value": 30.0},
            {"name": "Fun", "value": 20.0},
            {"name": "Bus", "value": 15.0},
        ]

    def test_no_recent_expenses(self):
        assert dashboard.category_stats([], NOW) == []


class TestSummaries:
    """Sums and the savings recommendation."""

    def test_recommended_savings(self):
        assert dashboard.recommended_savings(Decimal("180")) == 18.0
        assert dashboard.recommended_savings(Decimal("-50")) == 0.0

    def test_total(self):
        assert dashboard.total([row(1, "0.10", NOW), row(2, "0.20", NOW)]) == Decimal("0.30")


class TestAssembledDashboard:
    """GET /api/dashboard end to end."""

    def test_scenario(self, client, alice):
        """Income 500, expense 120, investment 200 for a fresh user."""
        headers = alice["headers"]
        client.post("/api/incomes", json={"title": "Pay", "source": "Employer", "amount": 500}, headers=headers)
        client.post("/api/expenses", json={"title": "Food", "category": "Food", "amount": 120}, headers=headers)
        client.post("/api/investments", json={"title": "ETF", "area": "Stocks", "amount": 200}, headers=headers)

        body = client.get("/api/dashboard", headers=headers).json()

        assert body["totalBalance"] == 180.0
        assert body["totalIncome"] == 500.0
        assert body["totalExpense"] == 120.0
        assert body["totalInvested"] == 200.0
        assert body["totalIncomeSum"] == 500.0
        assert body["totalExpenseSum"] == 120.0
        assert body["totalInvestmentSum"] == 200.0
        assert body["balanceLeft"] == 180.0
        assert body["recommendedSavings"] == 18.0

        assert len(body["weeklyStats"]) == 7
        assert body["weeklyStats"][-1]["amount"] == 380.0
        assert body["categoryStats"] == [{"name": "Food", "value": 120.0}]

        assert len(body["allTransactions"]) == 3
        assert {t["type"] for t in body["transactions"]} == {"income", "expense", "investment"}
        assert len(body["expenses"]) == 1
        assert len(body["investments"]) == 1

    def test_recent_feed_is_capped(self, client, alice):
        for i in range(12):
            client.post("/api/expenses", json={"title": f"e{i}", "category": "Food", "amount": 1}, headers=alice["headers"])

        body = client.get("/api/dashboard", headers=alice["headers"]).json()
        assert len(body["transactions"]) == 10
        assert len(body["allTransactions"]) == 12

    def test_only_active_goals_counted(self, client, alice):
        headers = alice["headers"]
        client.post("/api/savings", json={"title": "Trip", "targetAmount": 100, "currentAmount": 40}, headers=headers)
        done = client.post("/api/savings", json={"title": "Car", "targetAmount": 50}, headers=headers).json()
        client.post(f"/api/savings/{done['id']}/contribute", json={"amount": 50}, headers=headers)

        body = client.get("/api/dashboard", headers=headers).json()
        assert [g["title"] for g in body["savingsGoals"]] == ["Trip"]
        assert body["totalSaved"] == 40.0
        assert body["totalTarget"] == 100.0

    def test_empty_user(self, client, alice):
        body = client.get("/api/dashboard", headers=alice["headers"]).json()
        assert body["allTransactions"] == []
        assert body["cards"] == []
        assert body["budgets"] == []
        assert body["categoryStats"] == []
        assert body["balanceLeft"] == 0.0
        assert body["recommendedSavings"] == 0.0
