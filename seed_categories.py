import argparse
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from database import session_scope
from models import Category, TransactionType, User

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: list[tuple[str, str, TransactionType]] = [
    ("Salary", "Monthly salary income", TransactionType.income),
    ("Freelance", "Freelance work income", TransactionType.income),
    ("Investment", "Investment returns and dividends", TransactionType.income),
    ("Business", "Business income", TransactionType.income),
    ("Other Income", "Other sources of income", TransactionType.income),
    ("Food & Dining", "Restaurant and grocery expenses", TransactionType.expense),
    ("Transportation", "Gas, public transport, maintenance", TransactionType.expense),
    ("Housing", "Rent, utilities, maintenance", TransactionType.expense),
    ("Entertainment", "Movies, games, subscriptions", TransactionType.expense),
    ("Healthcare", "Medical expenses and insurance", TransactionType.expense),
    ("Shopping", "Clothing and personal items", TransactionType.expense),
    ("Education", "Books, courses, training", TransactionType.expense),
    ("Bills & Utilities", "Phone, internet, electricity", TransactionType.expense),
    ("Insurance", "Life, health, car insurance", TransactionType.expense),
    ("Other Expenses", "Miscellaneous expenses", TransactionType.expense),
]


def seed_default_categories(session: Session, user_id: int) -> int:
    """Add the default categories a user does not have yet. Returns how many were added."""
    existing = {
        (row.type, row.name.lower())
        for row in session.execute(
            select(Category.type, Category.name).where(Category.user_id == user_id)
        )
    }
    added = 0
    for name, description, txn_type in DEFAULT_CATEGORIES:
        if (txn_type, name.lower()) in existing:
            continue
        session.add(
            Category(
                user_id=user_id,
                name=name,
                description=description,
                type=txn_type,
                is_active=True,
            )
        )
        added += 1
    session.flush()
    return added


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Add the default income and expense categories to a user."
    )
    parser.add_argument("email", help="email address of an existing user")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    with session_scope() as session:
        user = session.scalar(
            select(User).where(func.lower(User.email) == args.email.lower())
        )
        if not user:
            raise SystemExit(f"No user with email {args.email}")
        added = seed_default_categories(session, user.id)
    logger.info(f"seed_categories: user={args.email} added={added}")


if __name__ == "__main__":
    main()
