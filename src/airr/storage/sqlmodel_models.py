"""SQLModel ORM tables for artifacts, content, tasks, decisions, and runs."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class UploadedArtifact(SQLModel, table=True):
    __tablename__ = "uploaded_artifacts"  # type: ignore[bad-override]

    artifact_id: str = Field(primary_key=True)
    file_name: str
    media_type: str
    storage_locator: str
    size_bytes: int = Field(default=0)
    status: str = Field(index=True)
    error_message: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ExtractedContent(SQLModel, table=True):
    __tablename__ = "extracted_contents"  # type: ignore[bad-override]

    content_id: str = Field(primary_key=True)
    artifact_id: str = Field(
        sa_column=Column(
            ForeignKey("uploaded_artifacts.artifact_id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
    )
    text: str | None = Field(default=None, sa_column=Column(Text))
    language: str | None = None
    duration_seconds: int | None = None
    is_placeholder: bool = Field(default=False)
    status: str = Field(index=True)
    error_message: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Task(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_tasks_status_created", "status", "created_at"),)

    task_id: str = Field(primary_key=True)
    task_kind: str = Field(index=True)
    sla_tier: str = Field(index=True)
    budget_ceiling: int
    input_text: str = Field(sa_column=Column(Text, nullable=False))
    content_id: str | None = Field(
        default=None,
        sa_column=Column(
            ForeignKey("extracted_contents.content_id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    status: str = Field(index=True)
    error_message: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class RoutingDecision(SQLModel, table=True):
    __tablename__ = "routing_decisions"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("task_id", name="uq_routing_decisions_task"),
        Index("idx_routing_decisions_created", "created_at"),
    )

    decision_id: str = Field(primary_key=True)
    task_id: str = Field(
        sa_column=Column(
            ForeignKey("tasks.task_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    backend: str = Field(index=True)
    justification: str = Field(sa_column=Column(Text, nullable=False))
    estimated_cost: int
    estimated_latency_ms: int
    over_budget: bool = Field(default=False)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ExecutionRecord(SQLModel, table=True):
    __tablename__ = "execution_records"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("task_id", "attempt_no", name="uq_execution_records_task_attempt_no"),
        Index("idx_execution_records_task_time", "task_id", "created_at"),
    )

    record_id: str = Field(primary_key=True)
    task_id: str = Field(
        sa_column=Column(
            ForeignKey("tasks.task_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    attempt_no: int
    backend: str = Field(index=True)
    input_units: int
    output_units: int
    latency_ms: int
    cost: int
    success: bool
    failure_reason: str | None = Field(default=None, sa_column=Column(Text))
    retryable: bool = Field(default=False)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
