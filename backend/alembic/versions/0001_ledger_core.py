"""create ledger, tasks and notifications tables

Revision ID: 0001_ledger_core
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_ledger_core"
down_revision = None
branch_labels = None
depends_on = None

SCHEMAS = ("ledger", "tasks", "notifications")


def _is_mssql() -> bool:
    return op.get_bind().dialect.name == "mssql"


def _now():
    if _is_mssql():
        return sa.text("SYSUTCDATETIME()")
    return sa.func.now()


def upgrade() -> None:
    if _is_mssql():
        for schema in SCHEMAS:
            op.execute(
                f"IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = '{schema}') "
                f"EXEC('CREATE SCHEMA {schema}')"
            )

    op.create_table(
        "profiles",
        sa.Column("HouseholdId", sa.String(length=64), primary_key=True),
        sa.Column("ProfileId", sa.String(length=64), primary_key=True),
        sa.Column("Name", sa.String(length=120), nullable=False),
        sa.Column("BalanceCents", sa.BigInteger(), nullable=True),
        sa.Column("Balance", sa.Numeric(12, 2), nullable=True),
        sa.Column("Version", sa.Integer(), nullable=False),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        schema="ledger",
    )

    op.create_table(
        "savings_goals",
        sa.Column("GoalId", sa.String(length=64), primary_key=True),
        sa.Column("HouseholdId", sa.String(length=64), nullable=False),
        sa.Column("ProfileId", sa.String(length=64), nullable=False),
        sa.Column("Name", sa.String(length=120), nullable=False),
        sa.Column("TargetAmountCents", sa.BigInteger(), nullable=False),
        sa.Column("CurrentAmountCents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("SortOrder", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ClaimedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        schema="ledger",
    )
    op.create_index(
        "ix_ledger_savings_goals_profile",
        "savings_goals",
        ["HouseholdId", "ProfileId", "SortOrder"],
        schema="ledger",
    )

    op.create_table(
        "transactions",
        sa.Column("Id", sa.String(length=64), primary_key=True),
        sa.Column("HouseholdId", sa.String(length=64), nullable=False),
        sa.Column("ProfileId", sa.String(length=64), nullable=False),
        sa.Column("AmountCents", sa.BigInteger(), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("Memo", sa.String(length=300), nullable=False),
        sa.Column("Type", sa.String(length=30), nullable=False),
        sa.Column("Status", sa.String(length=20), nullable=False),
        sa.Column("Category", sa.String(length=40), nullable=True),
        sa.Column("TaskId", sa.String(length=64), nullable=True),
        sa.Column("GoalId", sa.String(length=64), nullable=True),
        sa.Column("BalanceAfterCents", sa.BigInteger(), nullable=False),
        sa.Column("BalanceAfter", sa.Numeric(12, 2), nullable=False),
        sa.Column("Date", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("PaidAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("RejectedAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        schema="ledger",
    )
    op.create_index(
        "ix_ledger_transactions_profile_date",
        "transactions",
        ["HouseholdId", "ProfileId", "Date"],
        schema="ledger",
    )

    op.create_table(
        "tasks",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("HouseholdId", sa.String(length=64), nullable=False),
        sa.Column("TaskId", sa.String(length=64), nullable=False),
        sa.Column("StorageProfileId", sa.String(length=64), nullable=True),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("AssigneeId", sa.String(length=64), nullable=True),
        sa.Column("Status", sa.String(length=30), nullable=False, server_default=sa.text("'OPEN'")),
        sa.Column("ValueCents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("BonusCents", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("RejectionComment", sa.String(length=500), nullable=True),
        sa.Column("PaidAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column("Version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        schema="tasks",
    )
    op.create_index("ix_tasks_tasks_Id", "tasks", ["Id"], schema="tasks")
    op.create_index("ix_tasks_tasks_AssigneeId", "tasks", ["AssigneeId"], schema="tasks")
    op.create_index("ix_tasks_tasks_household_task", "tasks", ["HouseholdId", "TaskId"], schema="tasks")

    op.create_table(
        "notifications",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("HouseholdId", sa.String(length=64), nullable=False),
        sa.Column("TargetProfileId", sa.String(length=64), nullable=False),
        sa.Column("Type", sa.String(length=50), nullable=False),
        sa.Column("Title", sa.Unicode(length=160), nullable=False),
        sa.Column("Body", sa.Unicode(length=400), nullable=True),
        sa.Column("SourceModule", sa.String(length=80), nullable=True),
        sa.Column("SourceId", sa.String(length=120), nullable=True),
        sa.Column("MetaJson", sa.Text(), nullable=True),
        sa.Column("IsRead", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("ReadAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        schema="notifications",
    )
    op.create_index("ix_notifications_notifications_Id", "notifications", ["Id"], schema="notifications")
    op.create_index(
        "ix_notifications_target_status_created",
        "notifications",
        ["HouseholdId", "TargetProfileId", "IsRead", "CreatedAt"],
        schema="notifications",
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_target_status_created", table_name="notifications", schema="notifications")
    op.drop_index("ix_notifications_notifications_Id", table_name="notifications", schema="notifications")
    op.drop_table("notifications", schema="notifications")
    op.drop_index("ix_tasks_tasks_household_task", table_name="tasks", schema="tasks")
    op.drop_index("ix_tasks_tasks_AssigneeId", table_name="tasks", schema="tasks")
    op.drop_index("ix_tasks_tasks_Id", table_name="tasks", schema="tasks")
    op.drop_table("tasks", schema="tasks")
    op.drop_index("ix_ledger_transactions_profile_date", table_name="transactions", schema="ledger")
    op.drop_table("transactions", schema="ledger")
    op.drop_index("ix_ledger_savings_goals_profile", table_name="savings_goals", schema="ledger")
    op.drop_table("savings_goals", schema="ledger")
    op.drop_table("profiles", schema="ledger")
