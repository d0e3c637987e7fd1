"""Tests for the paginated record families and standalone transactions."""

import pytest


def _post(client, headers, path, body):
    response = client.post(path, json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _expense(title, category="Food", amount=10, date=None):
    body = {"title": title, "category": category, "amount": amount}
    if date:
        body["date"] = date
    return body


class TestPagination:
    """Page envelopes for record lists."""

    @pytest.fixture
    def three_expenses(self, client, alice):
        for title, date in (("old", "2024-01-01"), ("mid", "2024-02-01"), ("new", "2024-03-01")):
            _post(client, alice["headers"], "/api/expenses", _expense(title, date=date))

    def test_pages_round_up(self, client, alice, three_expenses):
        body = client.get("/api/expenses?page=1&limit=2", headers=alice["headers"]).json()
        assert [e["title"] for e in body["expenses"]] == ["new", "mid"]
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    def test_second_page(self, client, alice, three_expenses):
        body = client.get("/api/expenses?page=2&limit=2", headers=alice["headers"]).json()
        assert [e["title"] for e in body["expenses"]] == ["old"]

    def test_page_past_the_end_is_empty(self, client, alice, three_expenses):
        """Pages beyond the last report the same total."""
        body = client.get("/api/expenses?page=5&limit=2", headers=alice["headers"]).json()
        assert body["expenses"] == []
        assert body["pagination"]["total"] == 3

    def test_defaults(self, client, alice, three_expenses):
        body = client.get("/api/expenses", headers=alice["headers"]).json()
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 3, "pages": 1}

    def test_empty_family(self, client, alice):
        body = client.get("/api/incomes", headers=alice["headers"]).json()
        assert body == {"incomes": [], "pagination": {"page": 1, "limit": 10, "total": 0, "pages": 0}}


class TestFilters:
    """Per-family filter fields."""

    def test_expense_category_filter(self, client, alice):
        _post(client, alice["headers"], "/api/expenses", _expense("lunch", "Food"))
        _post(client, alice["headers"], "/api/expenses", _expense("bus", "Transport"))

        body = client.get("/api/expenses?category=Transport", headers=alice["headers"]).json()
        assert [e["title"] for e in body["expenses"]] == ["bus"]
        assert body["pagination"]["total"] == 1

    def test_income_source_filter(self, client, alice):
        _post(client, alice["headers"], "/api/incomes", {"title": "Pay", "source": "Employer", "amount": 100})
        _post(client, alice["headers"], "/api/incomes", {"title": "Gig", "source": "Freelance", "amount": 50})

        body = client.get("/api/incomes?source=Freelance", headers=alice["headers"]).json()
        assert [i["title"] for i in body["incomes"]] == ["Gig"]

    def test_investment_area_filter(self, client, alice):
        _post(client, alice["headers"], "/api/investments", {"title": "ETF", "area": "Stocks", "amount": 100})
        _post(client, alice["headers"], "/api/investments", {"title": "BTC", "area": "Crypto", "amount": 50})

        body = client.get("/api/investments?area=Crypto", headers=alice["headers"]).json()
        assert [i["title"] for i in body["investments"]] == ["BTC"]


class TestUpdates:
    """Partial updates."""

    def test_update_patches_only_given_fields(self, client, alice):
        expense = _post(client, alice["headers"], "/api/expenses", {**_expense("lunch"), "description": "tacos"})
        response = client.put(f"/api/expenses/{expense['id']}", json={"amount": "99.5"}, headers=alice["headers"])
        assert response.status_code == 200
        body = response.json()
        assert body["amount"] == 99.5
        assert body["title"] == "lunch"
        assert body["description"] == "tacos"

    def test_date_strings_are_parsed(self, client, alice):
        income = _post(client, alice["headers"], "/api/incomes",
                       {"title": "Pay", "source": "Employer", "amount": 100, "date": "2024-06-30"})
        assert income["date"].startswith("2024-06-30")

    def test_unknown_record(self, client, alice):
        response = client.put("/api/incomes/999", json={"title": "x"}, headers=alice["headers"])
        assert response.status_code == 404
        assert response.json() == {"error": "Income not found"}


class TestOwnership:
    """Records are scoped to the caller."""

    def test_other_users_records_are_invisible(self, client, alice, bob):
        """Foreign records look exactly like missing ones."""
        expense = _post(client, alice["headers"], "/api/expenses", _expense("lunch"))

        assert client.get("/api/expenses", headers=bob["headers"]).json()["expenses"] == []

        response = client.put(f"/api/expenses/{expense['id']}", json={"amount": 1}, headers=bob["headers"])
        assert response.status_code == 404
        assert response.json() == {"error": "Expense not found"}

        response = client.delete(f"/api/expenses/{expense['id']}", headers=bob["headers"])
        assert response.status_code == 404

        mine = client.get("/api/expenses", headers=alice["headers"]).json()["expenses"]
        assert [e["amount"] for e in mine] == [10.0]

    def test_other_users_ledger_untouched(self, client, alice, bob, ledger):
        _post(client, alice["headers"], "/api/incomes", {"title": "Pay", "source": "Employer", "amount": 100})
        assert ledger(bob["headers"])["totalIncome"] == 0.0


class TestInvestments:
    """Investment specific defaults."""

    def test_current_value_defaults_to_amount(self, client, alice):
        investment = _post(client, alice["headers"], "/api/investments",
                           {"title": "ETF", "area": "Stocks", "amount": "250.00", "quantity": "2.5"})
        assert investment["currentValue"] == 250.0
        assert investment["quantity"] == 2.5

    def test_explicit_current_value(self, client, alice):
        investment = _post(client, alice["headers"], "/api/investments",
                           {"title": "ETF", "area": "Stocks", "amount": 250, "currentValue": 300})
        assert investment["currentValue"] == 300.0


class TestBudgets:
    """Budget defaults, checks and filters."""

    def test_defaults(self, client, alice):
        budget = _post(client, alice["headers"], "/api/budgets", {"name": "Groceries", "limit": "300"})
        assert budget["limit"] == 300.0
        assert budget["spent"] == 0.0
        assert budget["color"] == "#10B981"
        assert budget["frequency"] == "monthly"
        assert budget["alertThreshold"] == 80
        assert budget["followed"] is False

    def test_spent_update(self, client, alice):
        budget = _post(client, alice["headers"], "/api/budgets", {"name": "Groceries", "limit": 300})
        response = client.put(f"/api/budgets/{budget['id']}", json={"spent": 45.5}, headers=alice["headers"])
        assert response.json()["spent"] == 45.5
        assert response.json()["limit"] == 300.0

    @pytest.mark.parametrize("body,message", [
        ({"limit": 100}, "Name and limit are required"),
        ({"name": "x", "limit": 0}, "Limit must be greater than 0"),
        ({"name": "x", "limit": 100, "spent": -1}, "Spent cannot be negative"),
        ({"name": "x", "limit": 100, "alertThreshold": 150}, "Alert threshold must be between 1 and 100"),
    ])
    def test_rejected(self, client, alice, body, message):
        response = client.post("/api/budgets", json=body, headers=alice["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_category_filter_and_delete(self, client, alice):
        food = _post(client, alice["headers"], "/api/budgets", {"name": "Food", "limit": 300, "category": "Food"})
        _post(client, alice["headers"], "/api/budgets", {"name": "Fun", "limit": 100, "category": "Leisure"})

        body = client.get("/api/budgets?category=Food", headers=alice["headers"]).json()
        assert [b["name"] for b in body["budgets"]] == ["Food"]

        response = client.delete(f"/api/budgets/{food['id']}", headers=alice["headers"])
        assert response.json() == {"message": "Budget deleted"}
        assert client.get("/api/budgets", headers=alice["headers"]).json()["pagination"]["total"] == 1


class TestTransactions:
    """Standalone transactions."""

    def test_create_and_list(self, client, alice, ledger):
        tx = _post(client, alice["headers"], "/api/transactions",
                   {"title": "Coffee", "category": "Food", "amount": 4.5, "type": "expense", "date": "2024-05-01T09:30:00"})
        assert tx["icon"] == "📤"
        assert tx["date"] == "2024-05-01"

        body = client.get("/api/transactions", headers=alice["headers"]).json()
        assert [t["id"] for t in body["transactions"]] == [tx["id"]]
        assert ledger(alice["headers"])["totalExpense"] == 0.0

    def test_optional_fields_are_returned(self, client, alice):
        tx = _post(client, alice["headers"], "/api/transactions",
                   {"title": "Rent", "category": "Housing", "amount": 900, "type": "expense",
                    "description": "October", "paymentMethod": "transfer"})
        assert tx["description"] == "October"
        assert tx["paymentMethod"] == "transfer"

        listed = client.get("/api/transactions", headers=alice["headers"]).json()["transactions"][0]
        assert listed["description"] == "October"
        assert listed["paymentMethod"] == "transfer"

    def test_invalid_type(self, client, alice):
        response = client.post("/api/transactions",
                               json={"title": "x", "category": "y", "amount": 1, "type": "gift"},
                               headers=alice["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "Type must be one of: income, expense, investment"}

    def test_missing_fields(self, client, alice):
        response = client.post("/api/transactions", json={"title": "x"}, headers=alice["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}
