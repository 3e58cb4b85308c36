"""Initial schema: artifacts, extracted content, tasks, routing decisions, runs."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "uploaded_artifacts",
        sa.Column("artifact_id", sa.String(), nullable=False),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("media_type", sa.String(), nullable=False),
        sa.Column("storage_locator", sa.String(), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("artifact_id"),
    )
    op.create_index(
        "ix_uploaded_artifacts_status",
        "uploaded_artifacts",
        ["status"],
        unique=False,
    )

    op.create_table(
        "extracted_contents",
        sa.Column("content_id", sa.String(), nullable=False),
        sa.Column("artifact_id", sa.String(), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("language", sa.String(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("is_placeholder", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["artifact_id"],
            ["uploaded_artifacts.artifact_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("content_id"),
        sa.UniqueConstraint("artifact_id"),
    )
    op.create_index(
        "ix_extracted_contents_status",
        "extracted_contents",
        ["status"],
        unique=False,
    )

    op.create_table(
        "tasks",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("task_kind", sa.String(), nullable=False),
        sa.Column("sla_tier", sa.String(), nullable=False),
        sa.Column("budget_ceiling", sa.Integer(), nullable=False),
        sa.Column("input_text", sa.Text(), nullable=False),
        sa.Column("content_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["content_id"],
            ["extracted_contents.content_id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("task_id"),
    )
    op.create_index("ix_tasks_task_kind", "tasks", ["task_kind"], unique=False)
    op.create_index("ix_tasks_sla_tier", "tasks", ["sla_tier"], unique=False)
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
    op.create_index("ix_tasks_content_id", "tasks", ["content_id"], unique=False)
    op.create_index(
        "idx_tasks_status_created",
        "tasks",
        ["status", "created_at"],
        unique=False,
    )

    op.create_table(
        "routing_decisions",
        sa.Column("decision_id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("backend", sa.String(), nullable=False),
        sa.Column("justification", sa.Text(), nullable=False),
        sa.Column("estimated_cost", sa.Integer(), nullable=False),
        sa.Column("estimated_latency_ms", sa.Integer(), nullable=False),
        sa.Column("over_budget", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.task_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("decision_id"),
        sa.UniqueConstraint("task_id", name="uq_routing_decisions_task"),
    )
    op.create_index(
        "ix_routing_decisions_backend",
        "routing_decisions",
        ["backend"],
        unique=False,
    )
    op.create_index(
        "idx_routing_decisions_created",
        "routing_decisions",
        ["created_at"],
        unique=False,
    )

    op.create_table(
        "execution_records",
        sa.Column("record_id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("attempt_no", sa.Integer(), nullable=False),
        sa.Column("backend", sa.String(), nullable=False),
        sa.Column("input_units", sa.Integer(), nullable=False),
        sa.Column("output_units", sa.Integer(), nullable=False),
        sa.Column("latency_ms", sa.Integer(), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("retryable", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.task_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("record_id"),
        sa.UniqueConstraint(
            "task_id",
            "attempt_no",
            name="uq_execution_records_task_attempt_no",
        ),
    )
    op.create_index(
        "ix_execution_records_task_id",
        "execution_records",
        ["task_id"],
        unique=False,
    )
    op.create_index(
        "ix_execution_records_backend",
        "execution_records",
        ["backend"],
        unique=False,
    )
    op.create_index(
        "idx_execution_records_task_time",
        "execution_records",
        ["task_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_execution_records_task_time", table_name="execution_records")
    op.drop_index("ix_execution_records_backend", table_name="execution_records")
    op.drop_index("ix_execution_records_task_id", table_name="execution_records")
    op.drop_table("execution_records")
    op.drop_index("idx_routing_decisions_created", table_name="routing_decisions")
    op.drop_index("ix_routing_decisions_backend", table_name="routing_decisions")
    op.drop_table("routing_decisions")
    op.drop_index("idx_tasks_status_created", table_name="tasks")
    op.drop_index("ix_tasks_content_id", table_name="tasks")
    op.drop_index("ix_tasks_status", table_name="tasks")
    op.drop_index("ix_tasks_sla_tier", table_name="tasks")
    op.drop_index("ix_tasks_task_kind", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_extracted_contents_status", table_name="extracted_contents")
    op.drop_table("extracted_contents")
    op.drop_index("ix_uploaded_artifacts_status", table_name="uploaded_artifacts")
    op.drop_table("uploaded_artifacts")
