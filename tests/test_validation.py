from datetime import date, timedelta

from schemas import (
    BudgetIn,
    BudgetUpdateIn,
    CategoryIn,
    GoalIn,
    GoalProgressIn,
    RegisterIn,
    TransactionIn,
)
from validation import validate_payload


def _register_payload(**overrides) -> dict:
    payload = {
        "fullname": "Alice Martin",
        "email": "alice@example.com",
        "password": "Secret123",
        "sexe": "female",
        "age": 30,
    }
    payload.update(overrides)
    return payload


def _fields(result) -> dict[str, str]:
    return {e.field: e.message for e in result.errors}


def test_register_age_boundary() -> None:
    too_young = validate_payload(RegisterIn, _register_payload(age=17))
    assert not too_young.ok
    assert _fields(too_young)["age"] == "Age must be between 18 and 120"

    adult = validate_payload(RegisterIn, _register_payload(age=18))
    assert adult.ok
    assert adult.value.age == 18


def test_register_password_needs_mixed_case_and_digit() -> None:
    result = validate_payload(RegisterIn, _register_payload(password="alllower1"))
    assert not result.ok
    assert "uppercase" in _fields(result)["password"]


def test_register_reports_every_bad_field() -> None:
    result = validate_payload(
        RegisterIn,
        _register_payload(fullname="A1", email="not-an-email", sexe="unknown"),
    )
    assert set(_fields(result)) == {"fullname", "email", "sexe"}


def test_missing_field_is_named() -> None:
    payload = _register_payload()
    del payload["email"]
    result = validate_payload(RegisterIn, payload)
    assert _fields(result) == {"email": "email is required"}


def test_non_object_body_is_rejected() -> None:
    result = validate_payload(RegisterIn, ["not", "an", "object"])
    assert not result.ok
    assert result.errors[0].field == "body"


def test_budget_end_must_follow_start() -> None:
    result = validate_payload(
        BudgetIn,
        {
            "name": "Groceries",
            "amount": "500",
            "start_date": "2025-01-31",
            "end_date": "2025-01-01",
        },
    )
    assert _fields(result) == {"end_date": "End date must be after start date"}


def test_update_payload_needs_at_least_one_field() -> None:
    result = validate_payload(BudgetUpdateIn, {})
    assert _fields(result) == {"body": "At least one field must be provided"}


def test_goal_target_date_must_be_in_the_future() -> None:
    payload = {
        "name": "Emergency fund",
        "target_amount": "1000",
        "target_date": date.today().isoformat(),
    }
    result = validate_payload(GoalIn, payload)
    assert _fields(result) == {"target_date": "Target date must be in the future"}

    payload["target_date"] = (date.today() + timedelta(days=30)).isoformat()
    assert validate_payload(GoalIn, payload).ok


def test_transaction_amount_and_description_rules() -> None:
    result = validate_payload(
        TransactionIn,
        {
            "amount": "0",
            "description": "   ",
            "type": "expense",
            "date": "2025-01-15",
            "category_id": 1,
        },
    )
    assert set(_fields(result)) == {"amount", "description"}
    assert _fields(result)["amount"] == "Amount must be greater than 0"


def test_category_color_must_be_hex() -> None:
    result = validate_payload(
        CategoryIn, {"name": "Groceries", "type": "expense", "color": "blue"}
    )
    assert _fields(result) == {"color": "Color must be a valid hex color code"}


def test_goal_progress_rejects_zero() -> None:
    assert not validate_payload(GoalProgressIn, {"amount": 0}).ok
    assert validate_payload(GoalProgressIn, {"amount": "-25.50"}).ok
