"""budgets

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

budget_period_enum = sa.Enum(
    "ANNUAL", "QUARTERLY", "MONTHLY",
    name="budget_period_enum",
)
budget_status_enum = sa.Enum(
    "DRAFT", "APPROVED", "ACTIVE", "CLOSED",
    name="budget_status_enum",
)


def upgrade() -> None:
    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("period", budget_period_enum, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", budget_status_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "tenant_id", "name", "year", name="uq_budget_tenant_name_year"
        ),
    )
    op.create_index("ix_budgets_tenant_id", "budgets", ["tenant_id"])

    op.create_table(
        "budget_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "budget_id", sa.Integer(),
            sa.ForeignKey("budgets.id"), nullable=False,
        ),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=False,
        ),
        sa.Column("planned_amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.UniqueConstraint(
            "budget_id", "account_id", name="uq_budget_item_account"
        ),
    )
    op.create_index("ix_budget_items_budget_id", "budget_items", ["budget_id"])
    op.create_index("ix_budget_items_account_id", "budget_items", ["account_id"])


def downgrade() -> None:
    op.drop_index("ix_budget_items_account_id", table_name="budget_items")
    op.drop_index("ix_budget_items_budget_id", table_name="budget_items")
    op.drop_table("budget_items")
    op.drop_index("ix_budgets_tenant_id", table_name="budgets")
    op.drop_table("budgets")
    budget_status_enum.drop(op.get_bind(), checkfirst=True)
    budget_period_enum.drop(op.get_bind(), checkfirst=True)
