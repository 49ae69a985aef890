import logging
from datetime import date
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from auth import get_current_user, login_session, logout_session
from config import get_settings
from database import get_db
from models import (
    Budget,
    BudgetStatus,
    Category,
    GoalPriority,
    GoalStatus,
    Transaction,
    TransactionType,
    User,
)
from money import from_cents
from periods import Period, resolve_period
from schemas import (
    BudgetIn,
    BudgetUpdateIn,
    CategoryIn,
    CategoryUpdateIn,
    GoalIn,
    GoalProgressIn,
    GoalUpdateIn,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    TransactionIn,
    TransactionUpdateIn,
)
from services import (
    AuthenticationError,
    BudgetService,
    BudgetView,
    CategoryService,
    ConflictError,
    DashboardService,
    GoalService,
    GoalView,
    NotFoundError,
    TransactionFilters,
    TransactionService,
    UserService,
)
from validation import field_errors, validate_payload

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="FinTracker")
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="fintracker_session",
    max_age=settings.session_max_age,
    same_site="lax",
)


def envelope(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return JSONResponse(status_code=status_code, content=body)


def error_envelope(
    status_code: int, message: str, errors: Optional[list] = None
) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        return error_envelope(
            exc.status_code,
            str(exc.detail.get("message", "Request failed")),
            exc.detail.get("errors"),
        )
    return error_envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [e.as_dict() for e in field_errors(exc.errors())]
    return error_envelope(400, "Validation failed", errors)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"integrity_error: path={request.url.path} error={exc.orig}")
    return error_envelope(409, "Resource conflicts with existing data")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    message = "Internal server error"
    if settings.is_development:
        message = f"{message}: {exc}"
    return error_envelope(500, message)


def http_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=401, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


async def read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Request body must be valid JSON"
        ) from exc


async def parse_body(request: Request, schema):
    result = validate_payload(schema, await read_json(request))
    if not result.ok:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Validation failed",
                "errors": [e.as_dict() for e in result.errors],
            },
        )
    return result.value


def _query_int(request: Request, name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def _query_enum(request: Request, name: str, enum_cls):
    raw = request.query_params.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def period_from_request(request: Request) -> Optional[Period]:
    start = request.query_params.get("start_date")
    end = request.query_params.get("end_date")
    try:
        return resolve_period(start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    search = (request.query_params.get("search") or "").strip()
    return TransactionFilters(
        type=_query_enum(request, "type", TransactionType),
        category_id=_query_int(request, "category_id"),
        search=search or None,
        period=period_from_request(request),
    )


def user_out(user: User) -> dict[str, Any]:
    return {
        "id": user.id,
        "fullname": user.fullname,
        "email": user.email,
        "sexe": user.sexe.value,
        "age": user.age,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def category_out(category: Category, transaction_count: Optional[int] = None) -> dict[str, Any]:
    out = {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "type": category.type.value,
        "color": category.color,
        "is_active": category.is_active,
    }
    if transaction_count is not None:
        out["transaction_count"] = transaction_count
    return out


def transaction_out(txn: Transaction) -> dict[str, Any]:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "type": txn.type.value,
        "amount": from_cents(txn.amount_cents),
        "description": txn.description,
        "notes": txn.notes,
        "category": {
            "id": txn.category.id,
            "name": txn.category.name,
            "type": txn.category.type.value,
            "color": txn.category.color,
        }
        if txn.category
        else None,
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
    }


def budget_out(budget: Budget) -> dict[str, Any]:
    return {
        "id": budget.id,
        "name": budget.name,
        "description": budget.description,
        "amount": from_cents(budget.amount_cents),
        "spent": from_cents(budget.spent_cents),
        "status": budget.status.value,
        "start_date": budget.start_date.isoformat(),
        "end_date": budget.end_date.isoformat(),
    }


def budget_view_out(view: BudgetView) -> dict[str, Any]:
    out = budget_out(view.budget)
    out["actual_spent"] = from_cents(view.actual_spent_cents)
    out["remaining"] = from_cents(view.remaining_cents)
    out["percentage_used"] = view.percentage_used
    return out


def goal_out(view: GoalView) -> dict[str, Any]:
    goal = view.goal
    return {
        "id": goal.id,
        "name": goal.name,
        "description": goal.description,
        "target_amount": from_cents(goal.target_cents),
        "current_amount": from_cents(goal.current_cents),
        "target_date": goal.target_date.isoformat(),
        "status": goal.status.value,
        "priority": goal.priority.value,
        "progress_percentage": view.progress_percentage,
        "remaining_amount": from_cents(view.remaining_cents),
        "days_remaining": view.days_remaining,
    }


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/auth/register")
async def register(request: Request, db: Session = Depends(get_db)):
    data = await parse_body(request, RegisterIn)
    try:
        user = UserService(db).register(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("User registered successfully", user_out(user), status_code=201)


@app.post("/api/auth/login")
async def login(request: Request, db: Session = Depends(get_db)):
    data = await parse_body(request, LoginIn)
    try:
        user = UserService(db).authenticate(data.email, data.password)
    except ValueError as exc:
        raise http_error(exc) from exc
    login_session(request, user)
    return envelope("Login successful", user_out(user))


@app.post("/api/auth/logout")
def logout(request: Request):
    logout_session(request)
    return envelope("Logout successful")


@app.get("/api/users/profile")
def get_profile(user: User = Depends(get_current_user)):
    return envelope("Profile retrieved successfully", user_out(user))


@app.put("/api/users/profile")
async def update_profile(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, ProfileUpdateIn)
    try:
        updated = UserService(db).update_profile(user.id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    login_session(request, updated)
    return envelope("Profile updated successfully", user_out(updated))


@app.delete("/api/users/profile")
def delete_profile(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        UserService(db).delete_account(user.id)
    except ValueError as exc:
        raise http_error(exc) from exc
    logout_session(request)
    return envelope("Account deleted successfully")


@app.post("/api/categories")
async def create_category(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, CategoryIn)
    try:
        category = CategoryService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Category created successfully", category_out(category), status_code=201)


@app.get("/api/categories")
def list_categories(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    active_raw = request.query_params.get("active")
    active = None
    if active_raw:
        active = active_raw.strip().lower() in {"1", "true", "yes"}
    rows = CategoryService(db, user.id).list_all(
        type=_query_enum(request, "type", TransactionType), active=active
    )
    return envelope(
        "Categories retrieved successfully",
        [category_out(category, count) for category, count in rows],
    )


@app.get("/api/categories/{category_id}")
def get_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = CategoryService(db, user.id)
    try:
        category = service.get(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    data = category_out(category)
    data["recent_transactions"] = [
        transaction_out(txn) for txn in service.recent_transactions(category.id)
    ]
    return envelope("Category retrieved successfully", data)


@app.put("/api/categories/{category_id}")
async def update_category(
    category_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, CategoryUpdateIn)
    try:
        category = CategoryService(db, user.id).update(category_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Category updated successfully", category_out(category))


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        deactivated = CategoryService(db, user.id).delete(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    if deactivated:
        return envelope("Category has transactions and was deactivated")
    return envelope("Category deleted successfully")


@app.post("/api/transactions")
async def create_transaction(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, TransactionIn)
    try:
        txn = TransactionService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Transaction created successfully", transaction_out(txn), status_code=201)


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = filters_from_request(request)
    page = _query_int(request, "page", 1)
    limit = _query_int(request, "limit", 10)
    result = TransactionService(db, user.id).list(filters, page=page, limit=limit)
    return envelope(
        "Transactions retrieved successfully",
        {
            "transactions": [transaction_out(txn) for txn in result.items],
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "total_pages": result.total_pages,
            },
        },
    )


@app.get("/api/transactions/summary")
def transaction_summary(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    summary = TransactionService(db, user.id).summary(period_from_request(request))
    data = {
        kind: {
            "total": from_cents(summary[kind]["total_cents"]),
            "count": summary[kind]["count"],
        }
        for kind in (TransactionType.income.value, TransactionType.expense.value)
    }
    data["balance"] = from_cents(summary["balance_cents"])
    return envelope("Summary retrieved successfully", data)


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, user.id).get(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Transaction retrieved successfully", transaction_out(txn))


@app.put("/api/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, TransactionUpdateIn)
    try:
        txn = TransactionService(db, user.id).update(transaction_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Transaction updated successfully", transaction_out(txn))


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, user.id).soft_delete(transaction_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Transaction deleted successfully")


@app.post("/api/budgets")
async def create_budget(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, BudgetIn)
    try:
        budget = BudgetService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Budget created successfully", budget_out(budget), status_code=201)


@app.get("/api/budgets")
def list_budgets(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    views = BudgetService(db, user.id).list(
        status=_query_enum(request, "status", BudgetStatus)
    )
    return envelope(
        "Budgets retrieved successfully", [budget_view_out(v) for v in views]
    )


@app.get("/api/budgets/analytics")
def budget_analytics(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    year = _query_int(request, "year")
    month = _query_int(request, "month")
    if month is not None and not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Invalid month")
    if year is not None and not 1 <= year <= 9999:
        raise HTTPException(status_code=400, detail="Invalid year")
    rows = BudgetService(db, user.id).analytics(year=year, month=month)
    return envelope(
        "Budget analytics retrieved successfully",
        [
            {
                "status": row["status"].value,
                "count": row["count"],
                "total_budgeted": from_cents(row["total_budgeted_cents"]),
                "total_spent": from_cents(row["total_spent_cents"]),
            }
            for row in rows
        ],
    )


@app.get("/api/budgets/{budget_id}")
def get_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        view, transactions = BudgetService(db, user.id).detail(budget_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    data = budget_view_out(view)
    data["transactions"] = [transaction_out(txn) for txn in transactions]
    return envelope("Budget retrieved successfully", data)


@app.put("/api/budgets/{budget_id}")
async def update_budget(
    budget_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, BudgetUpdateIn)
    try:
        budget = BudgetService(db, user.id).update(budget_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Budget updated successfully", budget_out(budget))


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BudgetService(db, user.id).soft_delete(budget_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Budget deleted successfully")


@app.post("/api/goals")
async def create_goal(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, GoalIn)
    try:
        goal = GoalService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        "Goal created successfully",
        goal_out(GoalView(goal=goal, today=date.today())),
        status_code=201,
    )


@app.get("/api/goals")
def list_goals(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        views = GoalService(db, user.id).list(
            today=date.today(),
            status=_query_enum(request, "status", GoalStatus),
            priority=_query_enum(request, "priority", GoalPriority),
            sort_by=request.query_params.get("sort_by") or "target_date",
            order=request.query_params.get("order") or "asc",
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Goals retrieved successfully", [goal_out(v) for v in views])


@app.get("/api/goals/analytics")
def goal_analytics(
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    rows = GoalService(db, user.id).analytics()
    return envelope(
        "Goal analytics retrieved successfully",
        [
            {
                "status": row["status"].value,
                "priority": row["priority"].value,
                "count": row["count"],
                "total_target": from_cents(row["total_target_cents"]),
                "total_current": from_cents(row["total_current_cents"]),
                "avg_progress": row["avg_progress"],
            }
            for row in rows
        ],
    )


@app.get("/api/goals/{goal_id}")
def get_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = GoalService(db, user.id).get(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        "Goal retrieved successfully", goal_out(GoalView(goal=goal, today=date.today()))
    )


@app.put("/api/goals/{goal_id}")
async def update_goal(
    goal_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, GoalUpdateIn)
    try:
        goal = GoalService(db, user.id).update(goal_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        "Goal updated successfully", goal_out(GoalView(goal=goal, today=date.today()))
    )


@app.patch("/api/goals/{goal_id}/progress")
async def update_goal_progress(
    goal_id: int,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = await parse_body(request, GoalProgressIn)
    try:
        goal = GoalService(db, user.id).add_progress(goal_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope(
        "Goal progress updated successfully",
        goal_out(GoalView(goal=goal, today=date.today())),
    )


@app.delete("/api/goals/{goal_id}")
def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        GoalService(db, user.id).soft_delete(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return envelope("Goal deleted successfully")


@app.get("/api/dashboard")
def dashboard(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    overview = DashboardService(db, user.id).overview(date.today())
    monthly = overview["monthly"]
    return envelope(
        "Dashboard retrieved successfully",
        {
            "summary": {
                "income": from_cents(overview["income_cents"]),
                "expense": from_cents(overview["expense_cents"]),
                "balance": from_cents(overview["balance_cents"]),
                "goal_progress": overview["goal_progress"],
            },
            "active_budgets": overview["active_budgets"],
            "recent_transactions": [
                transaction_out(txn) for txn in overview["recent_transactions"]
            ],
            "monthly": {
                "months": monthly["months"],
                "income": [from_cents(c) for c in monthly["income"]],
                "expense": [from_cents(c) for c in monthly["expense"]],
            },
        },
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
