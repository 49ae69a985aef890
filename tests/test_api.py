from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from database import Base, create_db_engine, get_db, make_sessionmaker
from main import app


@pytest.fixture()
def client():
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    TestingSession = make_sessionmaker(engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


REGISTRATION = {
    "fullname": "Alice Martin",
    "email": "Alice@Example.com",
    "password": "Secret123",
    "sexe": "female",
    "age": 30,
}


def _login(client: TestClient) -> None:
    assert client.post("/api/auth/register", json=REGISTRATION).status_code == 201
    resp = client.post(
        "/api/auth/login",
        json={"email": "alice@example.com", "password": "Secret123"},
    )
    assert resp.status_code == 200


def _category_id(client: TestClient, name: str) -> int:
    resp = client.get("/api/categories", params={"type": "expense"})
    return next(c["id"] for c in resp.json()["data"] if c["name"] == name)


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_register_returns_profile_without_password(client: TestClient) -> None:
    resp = client.post("/api/auth/register", json=REGISTRATION)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["email"] == "alice@example.com"
    assert "password" not in body["data"]
    assert "password_hash" not in body["data"]

    again = client.post("/api/auth/register", json=REGISTRATION)
    assert again.status_code == 409
    assert again.json() == {"success": False, "message": "Email is already in use"}


def test_register_rejects_underage_user(client: TestClient) -> None:
    resp = client.post("/api/auth/register", json={**REGISTRATION, "age": 17})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    assert body["errors"] == [
        {"field": "age", "message": "Age must be between 18 and 120"}
    ]


def test_protected_routes_need_a_session(client: TestClient) -> None:
    resp = client.get("/api/transactions")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authentication required"}


def test_login_failure_is_generic(client: TestClient) -> None:
    client.post("/api/auth/register", json=REGISTRATION)
    wrong = client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": "nope"}
    )
    unknown = client.post(
        "/api/auth/login", json={"email": "bob@example.com", "password": "Secret123"}
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == unknown.json()["message"] == "Invalid email or password"


def test_registration_seeds_default_categories(client: TestClient) -> None:
    _login(client)
    resp = client.get("/api/categories")
    names = {c["name"] for c in resp.json()["data"]}
    assert {"Salary", "Food & Dining", "Other Expenses"} <= names


def test_transaction_updates_budget_through_the_api(client: TestClient) -> None:
    _login(client)
    food = _category_id(client, "Food & Dining")

    budget = client.post(
        "/api/budgets",
        json={
            "name": "Groceries",
            "amount": 500,
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
        },
    )
    assert budget.status_code == 201
    budget_id = budget.json()["data"]["id"]

    for amount, day in ((120, "2025-01-15"), (400, "2025-01-20")):
        resp = client.post(
            "/api/transactions",
            json={
                "amount": amount,
                "description": "Supermarket",
                "type": "expense",
                "date": day,
                "category_id": food,
            },
        )
        assert resp.status_code == 201

    detail = client.get(f"/api/budgets/{budget_id}").json()["data"]
    assert detail["spent"] == 520.0
    assert detail["status"] == "exceeded"
    assert detail["actual_spent"] == 520.0
    assert detail["remaining"] == -20.0
    assert len(detail["transactions"]) == 2

    overlap = client.post(
        "/api/budgets",
        json={
            "name": "Groceries",
            "amount": 300,
            "start_date": "2025-01-15",
            "end_date": "2025-02-15",
        },
    )
    assert overlap.status_code == 409
    assert overlap.json()["success"] is False


def test_transaction_type_must_match_category(client: TestClient) -> None:
    _login(client)
    food = _category_id(client, "Food & Dining")
    resp = client.post(
        "/api/transactions",
        json={
            "amount": 10,
            "description": "Refund",
            "type": "income",
            "date": "2025-01-15",
            "category_id": food,
        },
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Transaction type must match category type"


def test_listing_is_paginated_and_filtered(client: TestClient) -> None:
    _login(client)
    food = _category_id(client, "Food & Dining")
    for day in range(1, 6):
        client.post(
            "/api/transactions",
            json={
                "amount": 10,
                "description": f"Lunch {day}",
                "type": "expense",
                "date": f"2025-01-0{day}",
                "category_id": food,
            },
        )

    page = client.get("/api/transactions", params={"page": 2, "limit": 2}).json()
    assert page["data"]["pagination"] == {
        "page": 2,
        "limit": 2,
        "total": 5,
        "total_pages": 3,
    }
    assert [t["date"] for t in page["data"]["transactions"]] == [
        "2025-01-03",
        "2025-01-02",
    ]

    ranged = client.get(
        "/api/transactions",
        params={"start_date": "2025-01-02", "end_date": "2025-01-03"},
    ).json()
    assert ranged["data"]["pagination"]["total"] == 2

    searched = client.get("/api/transactions", params={"search": "lunch 4"}).json()
    assert [t["description"] for t in searched["data"]["transactions"]] == ["Lunch 4"]

    summary = client.get("/api/transactions/summary").json()["data"]
    assert summary["expense"] == {"total": 50.0, "count": 5}
    assert summary["balance"] == -50.0


def test_missing_and_foreign_records_are_404(client: TestClient) -> None:
    _login(client)
    resp = client.get("/api/transactions/9999")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Transaction not found"}
    assert client.delete("/api/goals/9999").status_code == 404


def test_malformed_json_is_a_bad_request(client: TestClient) -> None:
    _login(client)
    resp = client.post(
        "/api/transactions",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_goal_progress_endpoint(client: TestClient) -> None:
    _login(client)
    created = client.post(
        "/api/goals",
        json={
            "name": "Emergency fund",
            "target_amount": 1000,
            "target_date": (date.today() + timedelta(days=60)).isoformat(),
        },
    )
    assert created.status_code == 201
    goal_id = created.json()["data"]["id"]

    resp = client.patch(f"/api/goals/{goal_id}/progress", json={"amount": 1000})
    data = resp.json()["data"]
    assert data["status"] == "completed"
    assert data["progress_percentage"] == 100.0
    assert data["days_remaining"] == 60


def test_dashboard_summarises_current_activity(client: TestClient) -> None:
    _login(client)
    food = _category_id(client, "Food & Dining")
    client.post(
        "/api/transactions",
        json={
            "amount": 42.5,
            "description": "Groceries",
            "type": "expense",
            "date": date.today().isoformat(),
            "category_id": food,
        },
    )

    data = client.get("/api/dashboard").json()["data"]
    assert data["summary"]["expense"] == 42.5
    assert data["summary"]["balance"] == -42.5
    assert len(data["monthly"]["months"]) == 6
    assert data["monthly"]["expense"][-1] == 42.5
    assert data["recent_transactions"][0]["description"] == "Groceries"


def test_profile_update_and_account_deletion(client: TestClient) -> None:
    client.post(
        "/api/auth/register",
        json={**REGISTRATION, "email": "bob@example.com", "fullname": "Bob Stone"},
    )
    _login(client)

    taken = client.put("/api/users/profile", json={"email": "bob@example.com"})
    assert taken.status_code == 409

    renamed = client.put("/api/users/profile", json={"fullname": "Alice Stone"})
    assert renamed.json()["data"]["fullname"] == "Alice Stone"
    assert client.get("/api/users/profile").json()["data"]["fullname"] == "Alice Stone"

    assert client.delete("/api/users/profile").status_code == 200
    assert client.get("/api/users/profile").status_code == 401
    relogin = client.post(
        "/api/auth/login",
        json={"email": "alice@example.com", "password": "Secret123"},
    )
    assert relogin.status_code == 401


def test_logout_ends_the_session(client: TestClient) -> None:
    _login(client)
    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/dashboard").status_code == 401


def test_budget_analytics_rejects_out_of_range_period(client: TestClient) -> None:
    _login(client)
    year = client.get("/api/budgets/analytics", params={"year": 10000, "month": 1})
    assert year.status_code == 400
    assert year.json() == {"success": False, "message": "Invalid year"}

    month = client.get("/api/budgets/analytics", params={"year": 2025, "month": 13})
    assert month.status_code == 400
    assert month.json() == {"success": False, "message": "Invalid month"}

    ok = client.get("/api/budgets/analytics", params={"year": 2025, "month": 1})
    assert ok.status_code == 200
    assert ok.json()["success"] is True
