"""initial schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fullname", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "sexe", sa.Enum("male", "female", "other", name="sexe"), nullable=False
        ),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("age >= 18 AND age <= 120", name="ck_users_age_range"),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("color", sa.String(length=7), server_default="#007bff"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "type", "name", name="uq_category_user_type_name"
        ),
    )
    op.create_index("ix_categories_user_type", "categories", ["user_id", "type"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "type", sa.Enum("income", "expense", name="transactiontype"), nullable=False
        ),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_type_date",
        "transactions",
        ["user_id", "type", "date"],
    )
    op.create_index("ix_transactions_category", "transactions", ["category_id"])

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("spent_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("active", "completed", "exceeded", "paused", name="budgetstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents > 0", name="ck_budgets_amount_positive"),
        sa.CheckConstraint("spent_cents >= 0", name="ck_budgets_spent_non_negative"),
        sa.CheckConstraint("end_date > start_date", name="ck_budgets_window_order"),
    )
    op.create_index(
        "ix_budgets_user_status_window",
        "budgets",
        ["user_id", "status", "start_date", "end_date"],
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("target_cents", sa.BigInteger(), nullable=False),
        sa.Column("current_cents", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("target_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("active", "completed", "paused", "cancelled", name="goalstatus"),
            nullable=False,
            server_default="active",
        ),
        sa.Column(
            "priority",
            sa.Enum("low", "medium", "high", name="goalpriority"),
            nullable=False,
            server_default="medium",
        ),
        sa.Column("deleted_at", sa.DateTime()),
        *_timestamps(),
        sa.CheckConstraint("target_cents > 0", name="ck_goals_target_positive"),
        sa.CheckConstraint("current_cents >= 0", name="ck_goals_current_non_negative"),
    )
    op.create_index("ix_goals_user_status", "goals", ["user_id", "status"])
    op.create_index("ix_goals_target_date", "goals", ["target_date"])
    op.create_index("ix_goals_priority", "goals", ["priority"])


def downgrade():
    op.drop_index("ix_goals_priority", table_name="goals")
    op.drop_index("ix_goals_target_date", table_name="goals")
    op.drop_index("ix_goals_user_status", table_name="goals")
    op.drop_table("goals")
    op.drop_index("ix_budgets_user_status_window", table_name="budgets")
    op.drop_table("budgets")
    op.drop_index("ix_transactions_category", table_name="transactions")
    op.drop_index("ix_transactions_user_type_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_categories_user_type", table_name="categories")
    op.drop_table("categories")
    op.drop_table("users")
