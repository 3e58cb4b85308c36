"""Domain models for task routing, execution, and ingestion records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class TaskKind(str, Enum):
    """Kinds of work a task can request."""

    SUMMARY = "summary"
    CLASSIFICATION = "classification"
    EXTRACTION = "extraction"


class SlaTier(str, Enum):
    """Caller-declared priority used to pick a preferred backend."""

    LOW_LATENCY = "low_latency"
    LOW_COST = "low_cost"
    HIGH_QUALITY = "high_quality"


class TaskStatus(str, Enum):
    """Task lifecycle states, in forward order."""

    PENDING = "pending"
    ROUTED = "routed"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {TaskStatus.COMPLETED, TaskStatus.FAILED}


class ArtifactStatus(str, Enum):
    """Uploaded artifact processing states."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ContentStatus(str, Enum):
    """Extracted content states."""

    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


@dataclass(slots=True)
class TaskCreate:
    """Input payload for creating a task."""

    task_kind: str
    sla_tier: str
    input_text: str | None
    budget_ceiling: int
    content_id: str | None = None


@dataclass(slots=True)
class TaskView:
    """Readable task view."""

    task_id: str
    task_kind: TaskKind
    sla_tier: SlaTier
    budget_ceiling: int
    input_text: str
    content_id: str | None
    status: TaskStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class RoutingDecisionView:
    """Stored, immutable routing decision for one task."""

    decision_id: str
    task_id: str
    backend: str
    justification: str
    estimated_cost: int
    estimated_latency_ms: int
    over_budget: bool
    created_at: datetime


@dataclass(slots=True)
class ExecutionRecordWrite:
    """Measured outcome of one execution attempt."""

    backend: str
    input_units: int
    output_units: int
    latency_ms: int
    cost: int
    success: bool
    failure_reason: str | None = None
    retryable: bool = False


@dataclass(slots=True)
class ExecutionRecordView:
    """Stored execution attempt."""

    record_id: str
    task_id: str
    attempt_no: int
    backend: str
    input_units: int
    output_units: int
    latency_ms: int
    cost: int
    success: bool
    failure_reason: str | None
    retryable: bool
    created_at: datetime


@dataclass(slots=True)
class RoutedTask:
    """Task together with the decision that routed it."""

    task: TaskView
    decision: RoutingDecisionView


@dataclass(slots=True)
class ExecutionOutcome:
    """Task state after one execution attempt plus the appended record."""

    task: TaskView
    record: ExecutionRecordView


@dataclass(slots=True)
class AuditTrail:
    """Task, its routing decision, and all execution records in write order."""

    task: TaskView
    decision: RoutingDecisionView | None
    executions: list[ExecutionRecordView] = field(default_factory=list)


@dataclass(slots=True)
class DecisionWithTask:
    """Routing decision joined with its owning task."""

    decision: RoutingDecisionView
    task: TaskView


@dataclass(slots=True)
class ArtifactCreate:
    """Input payload for registering a stored upload."""

    file_name: str
    media_type: str
    storage_locator: str
    size_bytes: int


@dataclass(slots=True)
class ArtifactView:
    """Stored uploaded artifact."""

    artifact_id: str
    file_name: str
    media_type: str
    storage_locator: str
    size_bytes: int
    status: ArtifactStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class ContentFill:
    """Extraction result written once into a pending content row."""

    text: str
    language: str | None
    duration_seconds: int | None
    is_placeholder: bool


@dataclass(slots=True)
class ContentView:
    """Stored extracted content ("transcript")."""

    content_id: str
    artifact_id: str
    text: str | None
    language: str | None
    duration_seconds: int | None
    is_placeholder: bool
    status: ContentStatus
    error_message: str | None
    created_at: datetime
    updated_at: datetime
