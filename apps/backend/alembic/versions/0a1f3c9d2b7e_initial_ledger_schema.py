"""initial ledger schema: users, transactions, renewal records

Revision ID: 0a1f3c9d2b7e
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0a1f3c9d2b7e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "transaction",
        sa.Column("id", sa.String(length=128), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", sa.Enum("INCOME", "EXPENSE", name="txn_type"), nullable=False),
        sa.Column("category_id", sa.String(length=64), nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=True),
        sa.Column("credit_card_id", sa.String(length=64), nullable=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("paid", sa.Boolean(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurring_type", sa.Enum("FIXED", "INSTALLMENT", name="recurring_type"), nullable=True),
        sa.Column(
            "fixed_frequency",
            sa.Enum("DAILY", "WEEKLY", "MONTHLY", "QUARTERLY", "ANNUAL", name="fixed_frequency"),
            nullable=True,
        ),
        sa.Column("installment_count", sa.Integer(), nullable=True),
        sa.Column(
            "installment_period",
            sa.Enum(
                "DAYS", "WEEKS", "BIWEEKS", "MONTHS", "BIMONTHS", "QUARTERS", "SEMESTERS", "YEARS",
                name="installment_period",
            ),
            nullable=True,
        ),
        sa.Column("current_installment", sa.Integer(), nullable=True),
        sa.Column("parent_transaction_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ),
    )
    op.create_index("ix_transaction_user_date", "transaction", ["user_id", "date"], unique=False)
    op.create_index("ix_transaction_parent", "transaction", ["parent_transaction_id"], unique=False)

    op.create_table(
        "renewalrecord",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.String(length=128), nullable=False),
        sa.Column("renewed_at", sa.DateTime(), nullable=False),
        sa.Column("renewal_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("template_id", name="uq_renewal_template"),
    )


def downgrade() -> None:
    op.drop_table("renewalrecord")
    op.drop_index("ix_transaction_parent", table_name="transaction")
    op.drop_index("ix_transaction_user_date", table_name="transaction")
    op.drop_table("transaction")
    op.drop_table("user")
