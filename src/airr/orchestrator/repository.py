"""Persistence facade for artifacts, content, tasks, decisions, and runs."""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from sqlalchemy import func, literal_column
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from airr.orchestrator.errors import AlreadyRoutedError, InvalidInputError, NotFoundError
from airr.orchestrator.models import (
    ArtifactCreate,
    ArtifactStatus,
    ArtifactView,
    AuditTrail,
    ContentFill,
    ContentStatus,
    ContentView,
    DecisionWithTask,
    ExecutionRecordView,
    ExecutionRecordWrite,
    RoutingDecisionView,
    TaskCreate,
    TaskStatus,
    TaskView,
)
from airr.orchestrator.routing import RoutingEstimate, parse_sla_tier, parse_task_kind
from airr.storage.alembic_runner import upgrade_head
from airr.storage.common import (
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from airr.storage.sqlmodel_models import (
    ExecutionRecord,
    ExtractedContent,
    RoutingDecision,
    Task,
    UploadedArtifact,
)

_NON_TERMINAL_TASK_STATUSES = (
    TaskStatus.PENDING,
    TaskStatus.ROUTED,
    TaskStatus.RUNNING,
)
_ARTIFACT_PREDECESSORS: dict[ArtifactStatus, tuple[ArtifactStatus, ...]] = {
    ArtifactStatus.PROCESSING: (ArtifactStatus.UPLOADED,),
    ArtifactStatus.READY: (ArtifactStatus.UPLOADED, ArtifactStatus.PROCESSING),
    ArtifactStatus.FAILED: (ArtifactStatus.UPLOADED, ArtifactStatus.PROCESSING),
}


class RouterRepository:
    """Row store for the routing pipeline backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=sqlite_busy_timeout_ms,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations."""

        upgrade_head(self.db_path)

    # ---- ingestion ---------------------------------------------------------

    def create_ingestion(self, payload: ArtifactCreate) -> tuple[ArtifactView, ContentView]:
        """Insert an uploaded artifact together with its pending content row."""

        now = utc_now()
        with Session(self.engine) as session:
            artifact = UploadedArtifact(
                artifact_id=str(uuid4()),
                file_name=payload.file_name,
                media_type=payload.media_type,
                storage_locator=payload.storage_locator,
                size_bytes=payload.size_bytes,
                status=ArtifactStatus.UPLOADED.value,
                created_at=now,
                updated_at=now,
            )
            content = ExtractedContent(
                content_id=str(uuid4()),
                artifact_id=artifact.artifact_id,
                status=ContentStatus.PROCESSING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(artifact)
            session.flush()
            session.add(content)
            session.commit()
            session.refresh(artifact)
            session.refresh(content)
            return _to_artifact_view(artifact), _to_content_view(content)

    def get_artifact(self, *, artifact_id: str) -> ArtifactView | None:
        with Session(self.engine) as session:
            row = session.get(UploadedArtifact, artifact_id)
            return _to_artifact_view(row) if row is not None else None

    def get_content(self, *, content_id: str) -> ContentView | None:
        with Session(self.engine) as session:
            row = session.get(ExtractedContent, content_id)
            return _to_content_view(row) if row is not None else None

    def update_artifact_status(
        self,
        *,
        artifact_id: str,
        status: ArtifactStatus,
        error_message: str | None = None,
    ) -> bool:
        """Advance artifact status; returns False when the move is not forward."""

        allowed_from = _ARTIFACT_PREDECESSORS.get(status, ())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(UploadedArtifact)
                .where(
                    col(UploadedArtifact.artifact_id) == artifact_id,
                    col(UploadedArtifact.status).in_([value.value for value in allowed_from]),
                )
                .values(
                    status=status.value,
                    error_message=error_message,
                    updated_at=to_db_datetime(utc_now()),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def fill_content(self, *, content_id: str, fill: ContentFill) -> bool:
        """Write extraction output once; returns False if content is not pending."""

        with Session(self.engine) as session:
            result = session.exec(
                sa_update(ExtractedContent)
                .where(
                    col(ExtractedContent.content_id) == content_id,
                    col(ExtractedContent.status) == ContentStatus.PROCESSING.value,
                )
                .values(
                    text=fill.text,
                    language=fill.language,
                    duration_seconds=fill.duration_seconds,
                    is_placeholder=fill.is_placeholder,
                    status=ContentStatus.READY.value,
                    updated_at=to_db_datetime(utc_now()),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def fail_content(self, *, content_id: str, error_message: str) -> bool:
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(ExtractedContent)
                .where(
                    col(ExtractedContent.content_id) == content_id,
                    col(ExtractedContent.status) == ContentStatus.PROCESSING.value,
                )
                .values(
                    status=ContentStatus.FAILED.value,
                    error_message=error_message,
                    updated_at=to_db_datetime(utc_now()),
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    # ---- tasks -------------------------------------------------------------

    def create_task(self, payload: TaskCreate) -> TaskView:
        """Insert a pending task. Input must already be validated."""

        now = utc_now()
        with Session(self.engine) as session:
            row = Task(
                task_id=str(uuid4()),
                task_kind=parse_task_kind(payload.task_kind).value,
                sla_tier=parse_sla_tier(payload.sla_tier).value,
                budget_ceiling=payload.budget_ceiling,
                input_text=payload.input_text or "",
                content_id=payload.content_id,
                status=TaskStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_task_view(row)

    def get_task(self, *, task_id: str) -> TaskView | None:
        with Session(self.engine) as session:
            row = session.get(Task, task_id)
            return _to_task_view(row) if row is not None else None

    def find_task_for_content(self, *, content_id: str) -> TaskView | None:
        """Latest task created from the given content, if any."""

        with Session(self.engine) as session:
            row = session.exec(
                select(Task)
                .where(Task.content_id == content_id)
                .order_by(col(Task.created_at).desc())
                .limit(1),
            ).one_or_none()
            return _to_task_view(row) if row is not None else None

    def record_routing_decision(
        self,
        *,
        task_id: str,
        estimate: RoutingEstimate,
    ) -> tuple[TaskView, RoutingDecisionView]:
        """Persist the one decision for a task and move it pending -> routed atomically."""

        now = utc_now()
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(Task)
                .where(
                    col(Task.task_id) == task_id,
                    col(Task.status) == TaskStatus.PENDING.value,
                )
                .values(status=TaskStatus.ROUTED.value, updated_at=to_db_datetime(now)),
            )
            if result.rowcount != 1:
                session.rollback()
                existing = session.get(Task, task_id)
                if existing is None:
                    raise NotFoundError(f"Task not found: {task_id}")
                raise AlreadyRoutedError(
                    f"Task {task_id} cannot be routed from status={existing.status}.",
                )

            decision = RoutingDecision(
                decision_id=str(uuid4()),
                task_id=task_id,
                backend=estimate.backend,
                justification=estimate.justification,
                estimated_cost=estimate.estimated_cost,
                estimated_latency_ms=estimate.estimated_latency_ms,
                over_budget=estimate.over_budget,
                created_at=now,
            )
            session.add(decision)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise AlreadyRoutedError(
                    f"Task {task_id} already has a routing decision.",
                ) from error
            task = session.get(Task, task_id)
            session.refresh(decision)
            if task is None:
                raise NotFoundError(f"Task not found: {task_id}")
            return _to_task_view(task), _to_decision_view(decision)

    def transition_task(
        self,
        *,
        task_id: str,
        from_statuses: tuple[TaskStatus, ...],
        to_status: TaskStatus,
        error_message: str | None = None,
    ) -> bool:
        """Compare-and-set task status; returns False if the task moved concurrently."""

        values: dict[str, object] = {
            "status": to_status.value,
            "updated_at": to_db_datetime(utc_now()),
        }
        if error_message is not None:
            values["error_message"] = error_message
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(Task)
                .where(
                    col(Task.task_id) == task_id,
                    col(Task.status).in_([status.value for status in from_statuses]),
                )
                .values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def fail_task(self, *, task_id: str, error_message: str) -> bool:
        """Move any non-terminal task into the terminal failed state."""

        return self.transition_task(
            task_id=task_id,
            from_statuses=_NON_TERMINAL_TASK_STATUSES,
            to_status=TaskStatus.FAILED,
            error_message=error_message,
        )

    def finish_attempt(
        self,
        *,
        task_id: str,
        record: ExecutionRecordWrite,
        to_status: TaskStatus | None,
        error_message: str | None = None,
    ) -> tuple[TaskView, ExecutionRecordView]:
        """Append one execution record and optionally finalize the running task.

        Both writes share a transaction so a terminal status is never visible
        without the record that justifies it.
        """

        now = utc_now()
        with Session(self.engine) as session:
            task = session.get(Task, task_id)
            if task is None:
                raise NotFoundError(f"Task not found: {task_id}")
            if task.status != TaskStatus.RUNNING.value:
                raise InvalidInputError(
                    f"Task {task_id} is not running (status={task.status}).",
                )
            last_attempt = session.exec(
                select(func.max(ExecutionRecord.attempt_no)).where(
                    ExecutionRecord.task_id == task_id,
                ),
            ).one()
            row = ExecutionRecord(
                record_id=str(uuid4()),
                task_id=task_id,
                attempt_no=(last_attempt or 0) + 1,
                backend=record.backend,
                input_units=record.input_units,
                output_units=record.output_units,
                latency_ms=record.latency_ms,
                cost=record.cost,
                success=record.success,
                failure_reason=record.failure_reason,
                retryable=record.retryable,
                created_at=now,
            )
            session.add(row)
            if to_status is not None:
                task.status = to_status.value
                task.updated_at = to_db_datetime(now)
                if error_message is not None:
                    task.error_message = error_message
                session.add(task)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise InvalidInputError(
                    f"Concurrent execution attempt detected for task {task_id}.",
                ) from error
            session.refresh(row)
            session.refresh(task)
            return _to_task_view(task), _to_record_view(row)

    # ---- audit -------------------------------------------------------------

    def get_decision(self, *, task_id: str) -> RoutingDecisionView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(RoutingDecision).where(RoutingDecision.task_id == task_id),
            ).one_or_none()
            return _to_decision_view(row) if row is not None else None

    def list_execution_records(self, *, task_id: str) -> list[ExecutionRecordView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(ExecutionRecord)
                .where(ExecutionRecord.task_id == task_id)
                .order_by(col(ExecutionRecord.attempt_no).asc()),
            ).all()
        return [_to_record_view(row) for row in rows]

    def get_audit_trail(self, *, task_id: str) -> AuditTrail | None:
        """Read task, decision, and records inside one transaction snapshot."""

        with Session(self.engine) as session, session.begin():
            task = session.get(Task, task_id)
            if task is None:
                return None
            decision = session.exec(
                select(RoutingDecision).where(RoutingDecision.task_id == task_id),
            ).one_or_none()
            records = session.exec(
                select(ExecutionRecord)
                .where(ExecutionRecord.task_id == task_id)
                .order_by(col(ExecutionRecord.attempt_no).asc()),
            ).all()
            return AuditTrail(
                task=_to_task_view(task),
                decision=_to_decision_view(decision) if decision is not None else None,
                executions=[_to_record_view(row) for row in records],
            )

    def list_decisions_with_tasks(self, *, limit: int = 50) -> list[DecisionWithTask]:
        """Newest routing decisions joined with their tasks.

        Decisions sharing a timestamp fall back to insertion order, newest first.
        """

        with Session(self.engine) as session:
            rows = session.exec(
                select(RoutingDecision, Task)
                .join(Task, col(RoutingDecision.task_id) == col(Task.task_id))
                .order_by(
                    col(RoutingDecision.created_at).desc(),
                    literal_column("routing_decisions.rowid").desc(),
                )
                .limit(limit),
            ).all()
        return [
            DecisionWithTask(decision=_to_decision_view(decision), task=_to_task_view(task))
            for decision, task in rows
        ]


def _to_artifact_view(row: UploadedArtifact) -> ArtifactView:
    return ArtifactView(
        artifact_id=row.artifact_id,
        file_name=row.file_name,
        media_type=row.media_type,
        storage_locator=row.storage_locator,
        size_bytes=row.size_bytes,
        status=ArtifactStatus(row.status),
        error_message=row.error_message,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_content_view(row: ExtractedContent) -> ContentView:
    return ContentView(
        content_id=row.content_id,
        artifact_id=row.artifact_id,
        text=row.text,
        language=row.language,
        duration_seconds=row.duration_seconds,
        is_placeholder=bool(row.is_placeholder),
        status=ContentStatus(row.status),
        error_message=row.error_message,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_task_view(row: Task) -> TaskView:
    return TaskView(
        task_id=row.task_id,
        task_kind=parse_task_kind(row.task_kind),
        sla_tier=parse_sla_tier(row.sla_tier),
        budget_ceiling=row.budget_ceiling,
        input_text=row.input_text,
        content_id=row.content_id,
        status=TaskStatus(row.status),
        error_message=row.error_message,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_decision_view(row: RoutingDecision) -> RoutingDecisionView:
    return RoutingDecisionView(
        decision_id=row.decision_id,
        task_id=row.task_id,
        backend=row.backend,
        justification=row.justification,
        estimated_cost=row.estimated_cost,
        estimated_latency_ms=row.estimated_latency_ms,
        over_budget=bool(row.over_budget),
        created_at=to_utc_aware_datetime(row.created_at),
    )


def _to_record_view(row: ExecutionRecord) -> ExecutionRecordView:
    return ExecutionRecordView(
        record_id=row.record_id,
        task_id=row.task_id,
        attempt_no=row.attempt_no,
        backend=row.backend,
        input_units=row.input_units,
        output_units=row.output_units,
        latency_ms=row.latency_ms,
        cost=row.cost,
        success=bool(row.success),
        failure_reason=row.failure_reason,
        retryable=bool(row.retryable),
        created_at=to_utc_aware_datetime(row.created_at),
    )
