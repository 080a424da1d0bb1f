"""initial ledger tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

account_type_enum = sa.Enum(
    "ASSET", "LIABILITY", "EQUITY", "REVENUE", "EXPENSE",
    name="account_type_enum",
)
entry_status_enum = sa.Enum(
    "DRAFT", "POSTED", "CANCELLED", "REVERSED",
    name="entry_status_enum",
)
cash_flow_activity_enum = sa.Enum(
    "OPERATING", "INVESTING", "FINANCING",
    name="cash_flow_activity_enum",
)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("account_number", sa.String(32), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("account_type", account_type_enum, nullable=False),
        sa.Column("sub_type", sa.String(50), nullable=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column(
            "parent_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=True,
        ),
        sa.Column("balance", sa.Numeric(19, 4), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "tenant_id", "account_number", name="uq_account_tenant_number"
        ),
    )
    op.create_index("ix_accounts_tenant_id", "accounts", ["tenant_id"])
    op.create_index("ix_accounts_parent_id", "accounts", ["parent_id"])

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("entry_number", sa.String(32), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("status", entry_status_enum, nullable=False),
        sa.Column("cash_flow_activity", cash_flow_activity_enum, nullable=True),
        sa.Column("total_debit", sa.Numeric(19, 4), nullable=False),
        sa.Column("total_credit", sa.Numeric(19, 4), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("posted_by", sa.String(64), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column(
            "reversed_by_entry_id", sa.Integer(),
            sa.ForeignKey("journal_entries.id"), nullable=True,
        ),
        sa.Column("reversed_at", sa.DateTime(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column(
            "original_entry_id", sa.Integer(),
            sa.ForeignKey("journal_entries.id"), nullable=True,
        ),
        sa.UniqueConstraint(
            "tenant_id", "entry_number", name="uq_entry_tenant_number"
        ),
        sa.UniqueConstraint(
            "tenant_id", "sequence_number", name="uq_entry_tenant_sequence"
        ),
    )
    op.create_index(
        "ix_journal_entries_tenant_id", "journal_entries", ["tenant_id"]
    )
    op.create_index("ix_journal_entries_date", "journal_entries", ["date"])
    op.create_index("ix_journal_entries_status", "journal_entries", ["status"])

    op.create_table(
        "journal_entry_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "entry_id", sa.Integer(),
            sa.ForeignKey("journal_entries.id"), nullable=False,
        ),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=False,
        ),
        sa.Column("debit", sa.Numeric(19, 4), nullable=False),
        sa.Column("credit", sa.Numeric(19, 4), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("cost_center_id", sa.String(64), nullable=True),
        sa.Column("project_id", sa.String(64), nullable=True),
    )
    op.create_index(
        "ix_journal_entry_lines_entry_id", "journal_entry_lines", ["entry_id"]
    )
    op.create_index(
        "ix_journal_entry_lines_tenant_id", "journal_entry_lines", ["tenant_id"]
    )
    op.create_index(
        "ix_journal_entry_lines_account_id", "journal_entry_lines", ["account_id"]
    )

    op.create_table(
        "tenant_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_sequence_tenant_name"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_log_tenant_id", "audit_log", ["tenant_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_tenant_id", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("tenant_sequences")
    op.drop_index(
        "ix_journal_entry_lines_account_id", table_name="journal_entry_lines"
    )
    op.drop_index(
        "ix_journal_entry_lines_tenant_id", table_name="journal_entry_lines"
    )
    op.drop_index(
        "ix_journal_entry_lines_entry_id", table_name="journal_entry_lines"
    )
    op.drop_table("journal_entry_lines")
    op.drop_index("ix_journal_entries_status", table_name="journal_entries")
    op.drop_index("ix_journal_entries_date", table_name="journal_entries")
    op.drop_index("ix_journal_entries_tenant_id", table_name="journal_entries")
    op.drop_table("journal_entries")
    op.drop_index("ix_accounts_parent_id", table_name="accounts")
    op.drop_index("ix_accounts_tenant_id", table_name="accounts")
    op.drop_table("accounts")
    entry_status_enum.drop(op.get_bind(), checkfirst=True)
    cash_flow_activity_enum.drop(op.get_bind(), checkfirst=True)
    account_type_enum.drop(op.get_bind(), checkfirst=True)
