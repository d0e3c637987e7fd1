# fintrack/main.py
import os
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud, dashboard, models, schemas
from .config import get_settings
from .database import engine, get_db
from .errors import AppError, NotFoundError
from .logging_config import configure_logging, get_logger
from .security import get_current_user_id, issue_token

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)
log = get_logger("fintrack.api")

# Create tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Fintrack API")

# -----------------------------
# CORS
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -----------------------------
# Request logging
# -----------------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        log.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=status,
            durationMs=round((time.perf_counter() - start) * 1000, 1),
        )


# -----------------------------
# Helpers
# -----------------------------
def out(schema, row) -> dict:
    return schema.model_validate(row).model_dump(by_alias=True, mode="json")


def page_of(key: str, schema, items, total: int, page: int, limit: int) -> dict:
    return {
        key: [out(schema, item) for item in items],
        "pagination": crud.pagination_meta(page, limit, total),
    }


def list_family(db: Session, model, user_id: int, page, limit, filters=None):
    page, limit = crud.normalize_page(page, limit, settings.default_page_size)
    items, total = crud.list_records(db, model, user_id, page, limit, filters)
    return items, total, page, limit


# -----------------------------
# Health
# -----------------------------
@app.get("/health")
def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}


# -----------------------------
# User registration & login
# -----------------------------
def _auth_response(message: str, user: models.User) -> dict:
    return {"message": message, "token": issue_token(user.id), "user": out(schemas.UserOut, user)}


@app.post("/api/auth/register", status_code=201)
def register(payload: schemas.RegisterIn, db: Session = Depends(get_db)):
    user = crud.create_user(db, payload.email, payload.password, payload.name)
    return _auth_response("User registered successfully", user)


@app.post("/api/auth/login")
def login(payload: schemas.LoginIn, db: Session = Depends(get_db)):
    user = crud.authenticate_user(db, payload.email, payload.password)
    return _auth_response("Login successful", user)


@app.get("/api/auth/profile")
def get_profile(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    user = crud.get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return out(schemas.ProfileOut, user)


@app.put("/api/auth/profile")
def update_profile(
    payload: schemas.ProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    user = crud.update_profile(db, user_id, payload.patch())
    return {"message": "Profile updated", "user": out(schemas.UserOut, user)}


# -----------------------------
# Dashboard & transactions
# -----------------------------
@app.get("/api/dashboard")
def get_dashboard(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return dashboard.assemble(db, user_id)


@app.get("/api/transactions")
def list_transactions(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Transaction, user_id, page, limit)
    return page_of("transactions", schemas.TransactionOut, items, total, page, limit)


@app.post("/api/transactions", status_code=201)
def create_transaction(
    payload: schemas.TransactionIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.TransactionOut, crud.create_transaction(db, user_id, payload.patch()))


# -----------------------------
# Expenses
# -----------------------------
@app.get("/api/expenses")
def list_expenses(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    category: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Expense, user_id, page, limit, {"category": category})
    return page_of("expenses", schemas.ExpenseOut, items, total, page, limit)


@app.post("/api/expenses", status_code=201)
def create_expense(payload: schemas.ExpenseIn, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return out(schemas.ExpenseOut, crud.create_expense(db, user_id, payload.patch()))


@app.put("/api/expenses/{expense_id}")
def update_expense(
    expense_id: int,
    payload: schemas.ExpenseIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.ExpenseOut, crud.update_expense(db, expense_id, user_id, payload.patch()))


@app.delete("/api/expenses/{expense_id}")
def delete_expense(expense_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_expense(db, expense_id, user_id)
    return {"message": "Expense deleted"}


# -----------------------------
# Incomes
# -----------------------------
@app.get("/api/incomes")
def list_incomes(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    source: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Income, user_id, page, limit, {"source": source})
    return page_of("incomes", schemas.IncomeOut, items, total, page, limit)


@app.post("/api/incomes", status_code=201)
def create_income(payload: schemas.IncomeIn, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return out(schemas.IncomeOut, crud.create_income(db, user_id, payload.patch()))


@app.put("/api/incomes/{income_id}")
def update_income(
    income_id: int,
    payload: schemas.IncomeIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.IncomeOut, crud.update_income(db, income_id, user_id, payload.patch()))


@app.delete("/api/incomes/{income_id}")
def delete_income(income_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_income(db, income_id, user_id)
    return {"message": "Income deleted"}


# -----------------------------
# Investments
# -----------------------------
@app.get("/api/investments")
def list_investments(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    area: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Investment, user_id, page, limit, {"area": area})
    return page_of("investments", schemas.InvestmentOut, items, total, page, limit)


@app.post("/api/investments", status_code=201)
def create_investment(
    payload: schemas.InvestmentIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.InvestmentOut, crud.create_investment(db, user_id, payload.patch()))


@app.put("/api/investments/{investment_id}")
def update_investment(
    investment_id: int,
    payload: schemas.InvestmentIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.InvestmentOut, crud.update_investment(db, investment_id, user_id, payload.patch()))


@app.delete("/api/investments/{investment_id}")
def delete_investment(investment_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_investment(db, investment_id, user_id)
    return {"message": "Investment deleted"}


# -----------------------------
# Budgets
# -----------------------------
@app.get("/api/budgets")
def list_budgets(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    category: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Budget, user_id, page, limit, {"category": category})
    return page_of("budgets", schemas.BudgetOut, items, total, page, limit)


@app.post("/api/budgets", status_code=201)
def create_budget(payload: schemas.BudgetIn, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return out(schemas.BudgetOut, crud.create_budget(db, user_id, payload.patch()))


@app.put("/api/budgets/{budget_id}")
def update_budget(
    budget_id: int,
    payload: schemas.BudgetIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.BudgetOut, crud.update_budget(db, budget_id, user_id, payload.patch()))


@app.delete("/api/budgets/{budget_id}")
def delete_budget(budget_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_budget(db, budget_id, user_id)
    return {"message": "Budget deleted"}


# -----------------------------
# Cards
# -----------------------------
@app.get("/api/cards")
def list_cards(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    type: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.Card, user_id, page, limit, {"type": type})
    return page_of("cards", schemas.CardOut, items, total, page, limit)


@app.post("/api/cards", status_code=201)
def create_card(payload: schemas.CardIn, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return out(schemas.CardOut, crud.create_card(db, user_id, payload.patch()))


@app.put("/api/cards/{card_id}")
def update_card(
    card_id: int,
    payload: schemas.CardIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.CardOut, crud.update_card(db, card_id, user_id, payload.patch()))


@app.delete("/api/cards/{card_id}")
def delete_card(card_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_card(db, card_id, user_id)
    return {"message": "Card deleted"}


# -----------------------------
# Savings goals
# -----------------------------
@app.get("/api/savings")
def list_goals(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    status: Optional[str] = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items, total, page, limit = list_family(db, models.SavingsGoal, user_id, page, limit, {"status": status})
    return page_of("savingsGoals", schemas.SavingsGoalOut, items, total, page, limit)


@app.post("/api/savings", status_code=201)
def create_goal(payload: schemas.SavingsGoalIn, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return out(schemas.SavingsGoalOut, crud.create_goal(db, user_id, payload.patch()))


@app.put("/api/savings/{goal_id}")
def update_goal(
    goal_id: int,
    payload: schemas.SavingsGoalIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return out(schemas.SavingsGoalOut, crud.update_goal(db, goal_id, user_id, payload.patch()))


@app.post("/api/savings/{goal_id}/contribute")
def contribute_goal(
    goal_id: int,
    payload: schemas.AmountIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    goal, is_complete = crud.contribute_to_goal(db, goal_id, user_id, payload.amount)
    return {**out(schemas.SavingsGoalOut, goal), "isComplete": is_complete}


@app.post("/api/savings/{goal_id}/withdraw")
def withdraw_goal(
    goal_id: int,
    payload: schemas.AmountIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    goal = crud.withdraw_from_goal(db, goal_id, user_id, payload.amount, reopen=settings.reopen_goal_on_withdraw)
    return out(schemas.SavingsGoalOut, goal)


@app.delete("/api/savings/{goal_id}")
def delete_goal(goal_id: int, user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)):
    crud.delete_goal(db, goal_id, user_id)
    return {"message": "Savings goal deleted"}


# -----------------------------
# Global Error Handlers
# -----------------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    loc = errors[0]["loc"] if errors else ()
    field = loc[-1] if loc else None
    # malformed JSON reports a character offset, not a field name
    if isinstance(field, str) and field not in ("body", "query", "path", "header"):
        message = f"Invalid value for {field}"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        log.warning("route_not_found", method=request.method, path=request.url.path)
        return JSONResponse(status_code=404, content={"error": "Route not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.error("unhandled_exception", method=request.method, path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
