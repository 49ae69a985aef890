from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import GoalPriority, GoalStatus, Sexe, User
from schemas import GoalIn, GoalProgressIn, GoalUpdateIn
from services import ConflictError, GoalService, GoalView, NotFoundError


def _user(session: Session) -> User:
    user = User(
        fullname="Alice Martin",
        email="alice@example.com",
        password_hash="not-a-real-hash",
        sexe=Sexe.female,
        age=30,
    )
    session.add(user)
    session.commit()
    return user


def _goal_in(name: str = "Emergency fund", **overrides) -> GoalIn:
    values = {
        "name": name,
        "target_amount": Decimal("1000"),
        "target_date": date.today() + timedelta(days=90),
    }
    values.update(overrides)
    return GoalIn(**values)


def test_progress_completes_goal_once_target_is_reached() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        goal = goals.create(_goal_in())
        assert goal.status == GoalStatus.active

        goal = goals.add_progress(goal.id, GoalProgressIn(amount=Decimal("400")))
        assert goal.current_cents == 40_000
        assert goal.status == GoalStatus.active

        goal = goals.add_progress(goal.id, GoalProgressIn(amount=Decimal("600")))
        assert goal.current_cents == 100_000
        assert goal.status == GoalStatus.completed


def test_negative_progress_floors_at_zero() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        goal = goals.create(_goal_in(current_amount=Decimal("50")))

        goal = goals.add_progress(goal.id, GoalProgressIn(amount=Decimal("-80")))
        assert goal.current_cents == 0
        assert goal.status == GoalStatus.active


def test_create_with_current_at_target_is_already_completed() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goal = GoalService(session, user.id).create(
            _goal_in(current_amount=Decimal("1000"))
        )
        assert goal.status == GoalStatus.completed


def test_update_only_completes_when_amounts_reach_target() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        goal = goals.create(_goal_in())

        goal = goals.update(goal.id, GoalUpdateIn(status=GoalStatus.paused))
        assert goal.status == GoalStatus.paused

        goal = goals.update(goal.id, GoalUpdateIn(current_amount=Decimal("500")))
        assert goal.status == GoalStatus.paused

        goal = goals.update(goal.id, GoalUpdateIn(target_amount=Decimal("500")))
        assert goal.status == GoalStatus.completed


def test_goal_names_are_unique_among_live_goals() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        first = goals.create(_goal_in())
        with pytest.raises(ConflictError):
            goals.create(_goal_in(name="emergency FUND"))

        goals.soft_delete(first.id)
        with pytest.raises(NotFoundError):
            goals.get(first.id)
        goals.create(_goal_in())


def test_list_filters_sorts_and_projects() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    today = date(2025, 6, 1)
    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        goals.create(_goal_in("Car", priority=GoalPriority.high))
        goals.create(
            _goal_in(
                "Laptop",
                target_amount=Decimal("200"),
                current_amount=Decimal("50"),
                priority=GoalPriority.low,
            )
        )

        by_name = goals.list(today=today, sort_by="name", order="desc")
        assert [v.goal.name for v in by_name] == ["Laptop", "Car"]

        (laptop,) = goals.list(today=today, priority=GoalPriority.low)
        assert laptop.progress_percentage == 25.0
        assert laptop.remaining_cents == 15_000
        assert laptop.days_remaining == (laptop.goal.target_date - today).days

        with pytest.raises(ValueError):
            goals.list(today=today, sort_by="password")


def test_days_remaining_can_be_negative() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goal = GoalService(session, user.id).create(_goal_in())
        later = goal.target_date + timedelta(days=3)
        assert GoalView(goal=goal, today=later).days_remaining == -3


def test_analytics_groups_by_status_and_priority() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        goals = GoalService(session, user.id)
        goals.create(_goal_in("Car", current_amount=Decimal("250")))
        goals.create(_goal_in("Bike", current_amount=Decimal("750")))
        goals.create(
            _goal_in("Phone", current_amount=Decimal("1000"), priority=GoalPriority.high)
        )

        rows = {(r["status"], r["priority"]): r for r in goals.analytics()}
        active_medium = rows[(GoalStatus.active, GoalPriority.medium)]
        assert active_medium["count"] == 2
        assert active_medium["total_current_cents"] == 100_000
        assert active_medium["avg_progress"] == 50.0
        assert rows[(GoalStatus.completed, GoalPriority.high)]["count"] == 1
