from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session, joinedload

from budget_ledger import (
    TRACKING_STATUSES,
    SpendSnapshot,
    apply_delta,
    settle_status,
    spend_deltas,
)
from config import get_settings
from models import (
    Budget,
    BudgetStatus,
    Category,
    DEFAULT_CATEGORY_COLOR,
    Goal,
    GoalPriority,
    GoalStatus,
    Transaction,
    TransactionType,
    User,
)
from money import percentage, to_cents
from periods import Period, month_period, trailing_months, windows_overlap
from schemas import (
    BudgetIn,
    BudgetUpdateIn,
    CategoryIn,
    CategoryUpdateIn,
    GoalIn,
    GoalProgressIn,
    GoalUpdateIn,
    ProfileUpdateIn,
    RegisterIn,
    TransactionIn,
    TransactionUpdateIn,
)
from security import hash_password, verify_password
from seed_categories import seed_default_categories

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    search: Optional[str] = None
    period: Optional[Period] = None


@dataclass(frozen=True)
class Page:
    items: list[Transaction]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit) if self.total else 0


@dataclass(frozen=True)
class BudgetView:
    budget: Budget
    actual_spent_cents: int

    @property
    def remaining_cents(self) -> int:
        return self.budget.amount_cents - self.actual_spent_cents

    @property
    def percentage_used(self) -> float:
        return percentage(self.actual_spent_cents, self.budget.amount_cents)


@dataclass(frozen=True)
class GoalView:
    goal: Goal
    today: date

    @property
    def progress_percentage(self) -> float:
        return percentage(self.goal.current_cents, self.goal.target_cents)

    @property
    def remaining_cents(self) -> int:
        return self.goal.target_cents - self.goal.current_cents

    @property
    def days_remaining(self) -> int:
        return (self.goal.target_date - self.today).days


def _live_expense_total(
    session: Session, user_id: int, start: date, end: date
) -> int:
    return int(
        session.execute(
            select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
                Transaction.user_id == user_id,
                Transaction.deleted_at.is_(None),
                Transaction.type == TransactionType.expense,
                Transaction.date.between(start, end),
            )
        ).scalar_one()
        or 0
    )


def _income_expense_between(
    session: Session, user_id: int, start: Optional[date], end: Optional[date]
) -> tuple[int, int]:
    stmt = select(
        func.coalesce(
            func.sum(
                case(
                    (
                        Transaction.type == TransactionType.income,
                        Transaction.amount_cents,
                    ),
                    else_=0,
                )
            ),
            0,
        ),
        func.coalesce(
            func.sum(
                case(
                    (
                        Transaction.type == TransactionType.expense,
                        Transaction.amount_cents,
                    ),
                    else_=0,
                )
            ),
            0,
        ),
    ).where(Transaction.user_id == user_id, Transaction.deleted_at.is_(None))
    if start is not None and end is not None:
        stmt = stmt.where(Transaction.date.between(start, end))
    income, expense = session.execute(stmt).one()
    return int(income or 0), int(expense or 0)


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_active(self, user_id: int) -> Optional[User]:
        user = self.session.get(User, user_id)
        if not user or not user.is_active or user.deleted_at is not None:
            return None
        return user

    def _email_taken(self, email: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def register(self, data: RegisterIn, *, seed_categories: Optional[bool] = None) -> User:
        email = data.email.lower()
        if self._email_taken(email):
            raise ConflictError("Email is already in use")
        user = User(
            fullname=data.fullname,
            email=email,
            password_hash=hash_password(data.password),
            sexe=data.sexe,
            age=data.age,
            is_active=True,
        )
        try:
            self.session.add(user)
            self.session.flush()
            if seed_categories is None:
                seed_categories = get_settings().seed_categories
            if seed_categories:
                seed_default_categories(self.session, user.id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(user)
        logger.info(f"user_registered: id={user.id}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.scalar(
            select(User).where(func.lower(User.email) == email.lower())
        )
        if (
            not user
            or not user.is_active
            or user.deleted_at is not None
            or not verify_password(password, user.password_hash)
        ):
            logger.info("login_failed")
            raise AuthenticationError("Invalid email or password")
        logger.info(f"login_succeeded: user_id={user.id}")
        return user

    def update_profile(self, user_id: int, data: ProfileUpdateIn) -> User:
        user = self.get_active(user_id)
        if not user:
            raise NotFoundError("User not found")
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email") is not None:
            changes["email"] = changes["email"].lower()
            if self._email_taken(changes["email"], exclude_id=user.id):
                raise ConflictError("Email is already in use")
        for key, value in changes.items():
            if value is not None:
                setattr(user, key, value)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete_account(self, user_id: int) -> None:
        user = self.get_active(user_id)
        if not user:
            raise NotFoundError("User not found")
        user.is_active = False
        user.deleted_at = datetime.utcnow()
        self.session.commit()
        logger.info(f"user_deleted: id={user_id}")


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(
        self,
        *,
        type: Optional[TransactionType] = None,
        active: Optional[bool] = None,
    ) -> list[tuple[Category, int]]:
        stmt = (
            select(Category, func.count(Transaction.id).label("transaction_count"))
            .outerjoin(
                Transaction,
                and_(
                    Transaction.category_id == Category.id,
                    Transaction.deleted_at.is_(None),
                ),
            )
            .where(Category.user_id == self.user_id)
            .group_by(Category.id)
            .order_by(Category.name.asc())
        )
        if type is not None:
            stmt = stmt.where(Category.type == type)
        if active is not None:
            stmt = stmt.where(Category.is_active.is_(active))
        return [(row[0], int(row[1] or 0)) for row in self.session.execute(stmt)]

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def recent_transactions(self, category_id: int, limit: int = 10) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.category_id == category_id,
                Transaction.deleted_at.is_(None),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def _name_taken(
        self, name: str, type: TransactionType, *, exclude_id: Optional[int] = None
    ) -> bool:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            Category.type == type,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def _transaction_count(self, category_id: int) -> int:
        return int(
            self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.category_id == category_id
                )
            ).scalar_one()
            or 0
        )

    def create(self, data: CategoryIn) -> Category:
        if self._name_taken(data.name, data.type):
            raise ConflictError("Category with this name and type already exists")
        category = Category(
            user_id=self.user_id,
            name=data.name,
            description=data.description,
            type=data.type,
            color=data.color or DEFAULT_CATEGORY_COLOR,
            is_active=True,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryUpdateIn) -> Category:
        category = self.get(category_id)
        changes = data.model_dump(exclude_unset=True)
        name = changes.get("name") or category.name
        type_ = changes.get("type") or category.type
        if self._name_taken(name, type_, exclude_id=category.id):
            raise ConflictError("Category with this name and type already exists")
        if type_ != category.type and self._transaction_count(category.id):
            raise ValueError("Cannot change the type of a category that has transactions")
        for key, value in changes.items():
            if key in {"name", "type", "is_active"} and value is None:
                continue
            setattr(category, key, value)
        self.session.commit()
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> bool:
        """Delete a category, or deactivate it when transactions reference it.

        Returns True when the category was only deactivated.
        """
        category = self.get(category_id)
        if self._transaction_count(category.id):
            category.is_active = False
            self.session.commit()
            logger.info(f"category_deactivated: id={category.id} user_id={self.user_id}")
            return True
        self.session.delete(category)
        self.session.commit()
        logger.info(f"category_deleted: id={category_id} user_id={self.user_id}")
        return False


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def apply_spend_delta(self, delta_cents: int, on_date: date) -> list[Budget]:
        """Add ``delta_cents`` to every tracking budget whose window holds ``on_date``.

        Only flushes; the caller commits together with the transaction write.
        """
        budgets = self.session.scalars(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.deleted_at.is_(None),
                Budget.status.in_(TRACKING_STATUSES),
                Budget.start_date <= on_date,
                Budget.end_date >= on_date,
            )
        ).all()
        for budget in budgets:
            result = apply_delta(
                budget.spent_cents, budget.amount_cents, budget.status, delta_cents
            )
            if result.clamped:
                logger.warning(
                    f"budget_spend_clamped: budget_id={budget.id} "
                    f"spent_cents={budget.spent_cents} delta_cents={delta_cents}"
                )
            budget.spent_cents = result.spent_cents
            budget.status = result.status
        self.session.flush()
        return budgets

    def apply_transaction_change(
        self, before: Optional[SpendSnapshot], after: Optional[SpendSnapshot]
    ) -> None:
        for delta in spend_deltas(before, after):
            self.apply_spend_delta(delta.delta_cents, delta.on_date)

    def find_overlapping(
        self,
        name: str,
        start_date: date,
        end_date: date,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[Budget]:
        stmt = select(Budget).where(
            Budget.user_id == self.user_id,
            Budget.deleted_at.is_(None),
            func.lower(Budget.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Budget.id != exclude_id)
        for candidate in self.session.scalars(stmt):
            if windows_overlap(candidate.start_date, candidate.end_date, start_date, end_date):
                return candidate
        return None

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id or budget.deleted_at is not None:
            raise NotFoundError("Budget not found")
        return budget

    def _resync(self, budget: Budget) -> None:
        if budget.status not in TRACKING_STATUSES:
            return
        budget.spent_cents = _live_expense_total(
            self.session, self.user_id, budget.start_date, budget.end_date
        )
        budget.status = settle_status(
            budget.spent_cents, budget.amount_cents, budget.status
        )

    def create(self, data: BudgetIn) -> Budget:
        if self.find_overlapping(data.name, data.start_date, data.end_date):
            raise ConflictError(
                "A budget with this name already exists for the specified period"
            )
        budget = Budget(
            user_id=self.user_id,
            name=data.name,
            description=data.description,
            amount_cents=to_cents(data.amount),
            spent_cents=0,
            status=BudgetStatus.active,
            start_date=data.start_date,
            end_date=data.end_date,
        )
        self._resync(budget)
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_created: id={budget.id} user_id={self.user_id}")
        return budget

    def update(self, budget_id: int, data: BudgetUpdateIn) -> Budget:
        budget = self.get(budget_id)
        changes = data.model_dump(exclude_unset=True)
        name = changes.get("name") or budget.name
        start_date = changes.get("start_date") or budget.start_date
        end_date = changes.get("end_date") or budget.end_date
        if end_date <= start_date:
            raise ValueError("End date must be after start date")
        if self.find_overlapping(name, start_date, end_date, exclude_id=budget.id):
            raise ConflictError(
                "A budget with this name already exists for the specified period"
            )

        budget.name = name
        budget.start_date = start_date
        budget.end_date = end_date
        if "description" in changes:
            budget.description = changes["description"]
        if changes.get("amount") is not None:
            budget.amount_cents = to_cents(changes["amount"])
        if changes.get("status") is not None:
            budget.status = changes["status"]
        if {"amount", "start_date", "end_date", "status"} & changes.keys():
            self._resync(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def soft_delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        budget.deleted_at = datetime.utcnow()
        self.session.commit()
        logger.info(f"budget_deleted: id={budget_id} user_id={self.user_id}")

    def list(self, *, status: Optional[BudgetStatus] = None) -> list[BudgetView]:
        actual = func.coalesce(func.sum(Transaction.amount_cents), 0).label("actual")
        stmt = (
            select(Budget, actual)
            .outerjoin(
                Transaction,
                and_(
                    Transaction.user_id == Budget.user_id,
                    Transaction.deleted_at.is_(None),
                    Transaction.type == TransactionType.expense,
                    Transaction.date >= Budget.start_date,
                    Transaction.date <= Budget.end_date,
                ),
            )
            .where(Budget.user_id == self.user_id, Budget.deleted_at.is_(None))
            .group_by(Budget.id)
            .order_by(Budget.start_date.desc(), Budget.id.desc())
        )
        if status is not None:
            stmt = stmt.where(Budget.status == status)
        return [
            BudgetView(budget=row[0], actual_spent_cents=int(row[1] or 0))
            for row in self.session.execute(stmt)
        ]

    def detail(self, budget_id: int) -> tuple[BudgetView, list[Transaction]]:
        budget = self.get(budget_id)
        view = BudgetView(
            budget=budget,
            actual_spent_cents=_live_expense_total(
                self.session, self.user_id, budget.start_date, budget.end_date
            ),
        )
        return view, self.window_transactions(budget)

    def window_transactions(self, budget: Budget, limit: int = 20) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.deleted_at.is_(None),
                Transaction.type == TransactionType.expense,
                Transaction.date.between(budget.start_date, budget.end_date),
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def analytics(
        self, *, year: Optional[int] = None, month: Optional[int] = None
    ) -> list[dict[str, object]]:
        stmt = (
            select(
                Budget.status,
                func.count(Budget.id).label("row_count"),
                func.coalesce(func.sum(Budget.amount_cents), 0).label("budgeted"),
                func.coalesce(func.sum(Budget.spent_cents), 0).label("spent"),
            )
            .where(Budget.user_id == self.user_id, Budget.deleted_at.is_(None))
            .group_by(Budget.status)
            .order_by(Budget.status)
        )
        if year and month:
            period = month_period(year, month)
            stmt = stmt.where(
                Budget.start_date <= period.end, Budget.end_date >= period.start
            )
        return [
            {
                "status": row.status,
                "count": int(row.row_count),
                "total_budgeted_cents": int(row.budgeted or 0),
                "total_spent_cents": int(row.spent or 0),
            }
            for row in self.session.execute(stmt)
        ]


def _snapshot(txn: Transaction) -> SpendSnapshot:
    return SpendSnapshot(type=txn.type, amount_cents=txn.amount_cents, date=txn.date)


class TransactionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _category_for(self, category_id: int, txn_type: TransactionType) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        if category.type != txn_type:
            raise ValueError("Transaction type must match category type")
        return category

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.scalar(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id,
                Transaction.id == transaction_id,
                Transaction.deleted_at.is_(None),
            )
        )
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def create(self, data: TransactionIn) -> Transaction:
        try:
            category = self._category_for(data.category_id, data.type)
            if not category.is_active:
                raise ValueError("Category is inactive")
            txn = Transaction(
                user_id=self.user_id,
                category_id=category.id,
                date=data.date,
                type=data.type,
                amount_cents=to_cents(data.amount),
                description=data.description,
                notes=data.notes,
            )
            self.session.add(txn)
            self.session.flush()
            BudgetService(self.session, self.user_id).apply_transaction_change(
                None, _snapshot(txn)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(
            f"transaction_created: id={txn.id} user_id={self.user_id} type={txn.type.value}"
        )
        return self.get(txn.id)

    def update(self, transaction_id: int, data: TransactionUpdateIn) -> Transaction:
        try:
            txn = self.get(transaction_id)
            before = _snapshot(txn)
            changes = data.model_dump(exclude_unset=True)
            new_type = changes.get("type") or txn.type
            new_category_id = changes.get("category_id") or txn.category_id
            category = self._category_for(new_category_id, new_type)
            if new_category_id != txn.category_id and not category.is_active:
                raise ValueError("Category is inactive")

            txn.type = new_type
            txn.category_id = new_category_id
            if changes.get("amount") is not None:
                txn.amount_cents = to_cents(changes["amount"])
            if changes.get("date") is not None:
                txn.date = changes["date"]
            if changes.get("description") is not None:
                txn.description = changes["description"]
            if "notes" in changes:
                txn.notes = changes["notes"]
            self.session.flush()

            BudgetService(self.session, self.user_id).apply_transaction_change(
                before, _snapshot(txn)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(f"transaction_updated: id={transaction_id} user_id={self.user_id}")
        self.session.expire(txn, ["category"])
        return self.get(transaction_id)

    def soft_delete(self, transaction_id: int) -> None:
        try:
            txn = self.get(transaction_id)
            txn.deleted_at = datetime.utcnow()
            self.session.flush()
            BudgetService(self.session, self.user_id).apply_transaction_change(
                _snapshot(txn), None
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        logger.info(f"transaction_deleted: id={transaction_id} user_id={self.user_id}")

    def list(
        self, filters: TransactionFilters, *, page: int = 1, limit: int = 10
    ) -> Page:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        conditions = [
            Transaction.user_id == self.user_id,
            Transaction.deleted_at.is_(None),
        ]
        if filters.type:
            conditions.append(Transaction.type == filters.type)
        if filters.category_id:
            conditions.append(Transaction.category_id == filters.category_id)
        if filters.period:
            conditions.append(
                Transaction.date.between(filters.period.start, filters.period.end)
            )
        if filters.search:
            like = f"%{filters.search.lower()}%"
            conditions.append(
                or_(
                    func.lower(Transaction.description).like(like),
                    func.lower(func.coalesce(Transaction.notes, "")).like(like),
                )
            )

        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )
        items = self.session.scalars(
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(*conditions)
            .order_by(
                Transaction.date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return Page(items=items, total=total, page=page, limit=limit)

    def recent(self, limit: int = 5) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.user_id == self.user_id, Transaction.deleted_at.is_(None)
            )
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return self.session.scalars(stmt).all()

    def summary(self, period: Optional[Period] = None) -> dict[str, object]:
        stmt = (
            select(
                Transaction.type,
                func.coalesce(func.sum(Transaction.amount_cents), 0).label("total"),
                func.count(Transaction.id).label("row_count"),
            )
            .where(
                Transaction.user_id == self.user_id,
                Transaction.deleted_at.is_(None),
            )
            .group_by(Transaction.type)
        )
        if period:
            stmt = stmt.where(Transaction.date.between(period.start, period.end))
        result: dict[str, object] = {
            TransactionType.income.value: {"total_cents": 0, "count": 0},
            TransactionType.expense.value: {"total_cents": 0, "count": 0},
        }
        for row in self.session.execute(stmt):
            result[row.type.value] = {
                "total_cents": int(row.total or 0),
                "count": int(row.row_count or 0),
            }
        result["balance_cents"] = (
            result["income"]["total_cents"] - result["expense"]["total_cents"]
        )
        return result


GOAL_SORT_COLUMNS = {
    "target_date": Goal.target_date,
    "name": Goal.name,
    "priority": Goal.priority,
    "status": Goal.status,
    "target_amount": Goal.target_cents,
    "current_amount": Goal.current_cents,
    "created_at": Goal.created_at,
}


class GoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _name_taken(self, name: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Goal.id).where(
            Goal.user_id == self.user_id,
            Goal.deleted_at.is_(None),
            func.lower(Goal.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Goal.id != exclude_id)
        return self.session.scalar(stmt) is not None

    def get(self, goal_id: int) -> Goal:
        goal = self.session.get(Goal, goal_id)
        if not goal or goal.user_id != self.user_id or goal.deleted_at is not None:
            raise NotFoundError("Goal not found")
        return goal

    def create(self, data: GoalIn) -> Goal:
        if self._name_taken(data.name):
            raise ConflictError("A goal with this name already exists")
        goal = Goal(
            user_id=self.user_id,
            name=data.name,
            description=data.description,
            target_cents=to_cents(data.target_amount),
            current_cents=to_cents(data.current_amount),
            target_date=data.target_date,
            priority=data.priority,
            status=GoalStatus.active,
        )
        if goal.current_cents >= goal.target_cents:
            goal.status = GoalStatus.completed
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        logger.info(f"goal_created: id={goal.id} user_id={self.user_id}")
        return goal

    def update(self, goal_id: int, data: GoalUpdateIn) -> Goal:
        goal = self.get(goal_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") and changes["name"] != goal.name:
            if self._name_taken(changes["name"], exclude_id=goal.id):
                raise ConflictError("A goal with this name already exists")
            goal.name = changes["name"]
        if "description" in changes:
            goal.description = changes["description"]
        if changes.get("target_amount") is not None:
            goal.target_cents = to_cents(changes["target_amount"])
        if changes.get("current_amount") is not None:
            goal.current_cents = to_cents(changes["current_amount"])
        if changes.get("target_date") is not None:
            goal.target_date = changes["target_date"]
        if changes.get("priority") is not None:
            goal.priority = changes["priority"]
        if changes.get("status") is not None:
            goal.status = changes["status"]
        amounts_changed = (
            changes.get("target_amount") is not None
            or changes.get("current_amount") is not None
        )
        if amounts_changed and goal.current_cents >= goal.target_cents:
            goal.status = GoalStatus.completed
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def add_progress(self, goal_id: int, data: GoalProgressIn) -> Goal:
        goal = self.get(goal_id)
        goal.current_cents = max(0, goal.current_cents + to_cents(data.amount))
        if goal.current_cents >= goal.target_cents:
            goal.status = GoalStatus.completed
        self.session.commit()
        self.session.refresh(goal)
        logger.info(
            f"goal_progress: id={goal.id} user_id={self.user_id} "
            f"current_cents={goal.current_cents}"
        )
        return goal

    def soft_delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        goal.deleted_at = datetime.utcnow()
        self.session.commit()
        logger.info(f"goal_deleted: id={goal_id} user_id={self.user_id}")

    def list(
        self,
        *,
        today: date,
        status: Optional[GoalStatus] = None,
        priority: Optional[GoalPriority] = None,
        sort_by: str = "target_date",
        order: str = "asc",
    ) -> list[GoalView]:
        column = GOAL_SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValueError(f"Cannot sort goals by '{sort_by}'")
        if order.lower() not in {"asc", "desc"}:
            raise ValueError("Order must be asc or desc")
        stmt = select(Goal).where(
            Goal.user_id == self.user_id, Goal.deleted_at.is_(None)
        )
        if status is not None:
            stmt = stmt.where(Goal.status == status)
        if priority is not None:
            stmt = stmt.where(Goal.priority == priority)
        ordering = column.desc() if order.lower() == "desc" else column.asc()
        stmt = stmt.order_by(ordering, Goal.id.asc())
        return [GoalView(goal=g, today=today) for g in self.session.scalars(stmt)]

    def analytics(self) -> list[dict[str, object]]:
        progress = Goal.current_cents * 100.0 / Goal.target_cents
        stmt = (
            select(
                Goal.status,
                Goal.priority,
                func.count(Goal.id).label("row_count"),
                func.coalesce(func.sum(Goal.target_cents), 0).label("target"),
                func.coalesce(func.sum(Goal.current_cents), 0).label("current"),
                func.avg(progress).label("avg_progress"),
            )
            .where(Goal.user_id == self.user_id, Goal.deleted_at.is_(None))
            .group_by(Goal.status, Goal.priority)
            .order_by(Goal.status, Goal.priority)
        )
        return [
            {
                "status": row.status,
                "priority": row.priority,
                "count": int(row.row_count),
                "total_target_cents": int(row.target or 0),
                "total_current_cents": int(row.current or 0),
                "avg_progress": round(float(row.avg_progress or 0), 2),
            }
            for row in self.session.execute(stmt)
        ]


class DashboardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def monthly_series(self, today: date, months: int = 6) -> dict[str, list]:
        labels: list[str] = []
        income_series: list[int] = []
        expense_series: list[int] = []
        for period in trailing_months(today, months):
            income, expense = _income_expense_between(
                self.session, self.user_id, period.start, period.end
            )
            labels.append(period.start.strftime("%b"))
            income_series.append(income)
            expense_series.append(expense)
        return {"months": labels, "income": income_series, "expense": expense_series}

    def goal_progress(self) -> float:
        goals = self.session.scalars(
            select(Goal).where(Goal.user_id == self.user_id, Goal.deleted_at.is_(None))
        ).all()
        if not goals:
            return 0.0
        total = sum(percentage(g.current_cents, g.target_cents) for g in goals)
        return round(total / len(goals), 1)

    def active_budget_count(self, today: date) -> int:
        return int(
            self.session.execute(
                select(func.count(Budget.id)).where(
                    Budget.user_id == self.user_id,
                    Budget.deleted_at.is_(None),
                    Budget.end_date >= today,
                )
            ).scalar_one()
            or 0
        )

    def overview(self, today: date) -> dict[str, object]:
        income, expense = _income_expense_between(
            self.session, self.user_id, None, None
        )
        return {
            "income_cents": income,
            "expense_cents": expense,
            "balance_cents": income - expense,
            "goal_progress": self.goal_progress(),
            "active_budgets": self.active_budget_count(today),
            "recent_transactions": TransactionService(
                self.session, self.user_id
            ).recent(limit=5),
            "monthly": self.monthly_series(today),
        }
