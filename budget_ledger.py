"""Rules that keep a budget's spent amount in step with its expense transactions.

Everything here works on plain values. ``BudgetService`` owns the queries and
feeds these functions the rows it loaded, so the arithmetic can be checked
without a database.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from models import BudgetStatus, TransactionType

# Budgets in these states follow their transactions. ``exceeded`` is an
# active budget that has reached its amount.
TRACKING_STATUSES = frozenset({BudgetStatus.active, BudgetStatus.exceeded})


@dataclass(frozen=True)
class SpendSnapshot:
    """The budget-relevant state of one transaction at a point in time."""

    type: TransactionType
    amount_cents: int
    date: date


@dataclass(frozen=True)
class SpendDelta:
    delta_cents: int
    on_date: date


@dataclass(frozen=True)
class BudgetSpend:
    spent_cents: int
    status: BudgetStatus
    clamped: bool = False


def spend_deltas(
    before: Optional[SpendSnapshot], after: Optional[SpendSnapshot]
) -> list[SpendDelta]:
    """Deltas to apply when a transaction moves from ``before`` to ``after``.

    ``before`` is None on create and ``after`` is None on delete. The reversal
    of the old contribution always comes first. Only expense states
    contribute, so an income -> expense edit applies without reversing and an
    expense -> income edit reverses without applying.
    """
    deltas: list[SpendDelta] = []
    if before is not None and before.type == TransactionType.expense:
        deltas.append(SpendDelta(-before.amount_cents, before.date))
    if after is not None and after.type == TransactionType.expense:
        deltas.append(SpendDelta(after.amount_cents, after.date))
    return deltas


def settle_status(
    spent_cents: int, amount_cents: int, status: BudgetStatus
) -> BudgetStatus:
    if status not in TRACKING_STATUSES:
        return status
    if spent_cents >= amount_cents:
        return BudgetStatus.exceeded
    return BudgetStatus.active


def apply_delta(
    spent_cents: int,
    amount_cents: int,
    status: BudgetStatus,
    delta_cents: int,
) -> BudgetSpend:
    """Add ``delta_cents`` to a budget's spend, never going below zero.

    ``clamped`` is set when the floor was hit, which means more was reversed
    than had been credited.
    """
    raw = spent_cents + delta_cents
    new_spent = max(0, raw)
    return BudgetSpend(
        spent_cents=new_spent,
        status=settle_status(new_spent, amount_cents, status),
        clamped=raw < 0,
    )
