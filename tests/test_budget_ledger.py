from datetime import date

from budget_ledger import SpendSnapshot, apply_delta, settle_status, spend_deltas
from models import BudgetStatus, TransactionType


def _expense(cents: int, day: date) -> SpendSnapshot:
    return SpendSnapshot(type=TransactionType.expense, amount_cents=cents, date=day)


def _income(cents: int, day: date) -> SpendSnapshot:
    return SpendSnapshot(type=TransactionType.income, amount_cents=cents, date=day)


def test_create_and_delete_produce_single_deltas() -> None:
    day = date(2025, 1, 15)
    created = spend_deltas(None, _expense(12_000, day))
    assert [(d.delta_cents, d.on_date) for d in created] == [(12_000, day)]

    deleted = spend_deltas(_expense(12_000, day), None)
    assert [(d.delta_cents, d.on_date) for d in deleted] == [(-12_000, day)]


def test_date_move_reverses_old_window_before_applying_new() -> None:
    old = _expense(5_000, date(2025, 1, 10))
    new = _expense(7_500, date(2025, 2, 10))
    deltas = spend_deltas(old, new)
    assert [(d.delta_cents, d.on_date) for d in deltas] == [
        (-5_000, date(2025, 1, 10)),
        (7_500, date(2025, 2, 10)),
    ]


def test_type_changes_only_touch_the_expense_side() -> None:
    day = date(2025, 3, 1)
    to_income = spend_deltas(_expense(1_000, day), _income(1_000, day))
    assert [d.delta_cents for d in to_income] == [-1_000]

    to_expense = spend_deltas(_income(1_000, day), _expense(1_000, day))
    assert [d.delta_cents for d in to_expense] == [1_000]

    assert spend_deltas(_income(1_000, day), _income(2_000, day)) == []
    assert spend_deltas(None, _income(1_000, day)) == []


def test_apply_delta_moves_between_active_and_exceeded() -> None:
    first = apply_delta(0, 50_000, BudgetStatus.active, 12_000)
    assert (first.spent_cents, first.status, first.clamped) == (
        12_000,
        BudgetStatus.active,
        False,
    )

    second = apply_delta(first.spent_cents, 50_000, first.status, 40_000)
    assert second.spent_cents == 52_000
    assert second.status == BudgetStatus.exceeded

    back = apply_delta(second.spent_cents, 50_000, second.status, -40_000)
    assert back.spent_cents == 12_000
    assert back.status == BudgetStatus.active


def test_reaching_the_amount_exactly_counts_as_exceeded() -> None:
    result = apply_delta(49_000, 50_000, BudgetStatus.active, 1_000)
    assert result.status == BudgetStatus.exceeded


def test_apply_delta_floors_at_zero_and_flags_it() -> None:
    result = apply_delta(1_000, 50_000, BudgetStatus.active, -3_000)
    assert result.spent_cents == 0
    assert result.clamped is True
    assert result.status == BudgetStatus.active


def test_settle_status_leaves_paused_and_completed_alone() -> None:
    assert settle_status(90_000, 50_000, BudgetStatus.paused) == BudgetStatus.paused
    assert (
        settle_status(90_000, 50_000, BudgetStatus.completed)
        == BudgetStatus.completed
    )
    assert settle_status(10_000, 50_000, BudgetStatus.exceeded) == BudgetStatus.active
