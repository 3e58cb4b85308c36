"""Task lifecycle orchestration: create, route, execute, audit."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import NoReturn

from sqlalchemy.exc import SQLAlchemyError

from airr.config import Settings
from airr.ingestion.adapter import IngestionAdapter
from airr.ingestion.extraction import TextExtractor
from airr.ingestion.file_store import LocalFileStore
from airr.ingestion.notifier import WorkflowNotifier, notifier_from_settings
from airr.orchestrator.backend import (
    BackendRunError,
    BackendRunRequest,
    ExecutionBackend,
    SimulatedBackend,
)
from airr.orchestrator.errors import (
    AlreadyRoutedError,
    BackendExecutionFailureError,
    InvalidInputError,
    NotFoundError,
    RouterError,
    dependency_guard,
)
from airr.orchestrator.models import (
    ArtifactStatus,
    AuditTrail,
    ContentStatus,
    DecisionWithTask,
    ExecutionOutcome,
    ExecutionRecordView,
    ExecutionRecordWrite,
    RoutedTask,
    SlaTier,
    TaskCreate,
    TaskKind,
    TaskStatus,
    TaskView,
)
from airr.orchestrator.repository import RouterRepository
from airr.orchestrator.routing import (
    RoutingEngine,
    parse_sla_tier,
    parse_task_kind,
    validate_budget_ceiling,
)

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500


@dataclass(slots=True)
class ResumeDefaults:
    """Task parameters applied when an external trigger resumes ingested content."""

    task_kind: str = TaskKind.SUMMARY.value
    sla_tier: str = SlaTier.HIGH_QUALITY.value
    budget_ceiling: int = 100


@dataclass(slots=True)
class ResumeRequest:
    """Resume trigger payload with optional task overrides."""

    artifact_id: str
    content_id: str
    task_kind: str | None = None
    sla_tier: str | None = None
    budget_ceiling: int | None = None


class TaskOrchestrator:
    """Drives tasks through pending -> routed -> running -> completed|failed."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repository: RouterRepository,
        engine: RoutingEngine,
        backend: ExecutionBackend,
        ingestion: IngestionAdapter | None = None,
        max_attempts: int = 3,
        resume_defaults: ResumeDefaults | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self.repository = repository
        self.engine = engine
        self.backend = backend
        self.ingestion = ingestion
        self.max_attempts = max_attempts
        self.resume_defaults = resume_defaults or ResumeDefaults()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        repository: RouterRepository,
        notifier: WorkflowNotifier | None = None,
    ) -> TaskOrchestrator:
        """Wire engine, simulated backend, and ingestion adapter from settings."""

        catalog = settings.routing.catalog
        seed = settings.execution.simulated_seed
        return cls(
            repository=repository,
            engine=RoutingEngine(catalog),
            backend=SimulatedBackend(
                catalog=catalog,
                jitter_ms=settings.execution.latency_jitter_ms,
                failure_rate=settings.execution.simulated_failure_rate,
                rng=random.Random(seed) if seed is not None else None,  # noqa: S311
            ),
            ingestion=IngestionAdapter(
                repository=repository,
                file_store=LocalFileStore(settings.ingestion.storage_dir),
                extractor=TextExtractor(max_chars=settings.ingestion.max_extracted_chars),
                notifier=notifier or notifier_from_settings(settings.ingestion),
                max_upload_bytes=settings.ingestion.max_upload_bytes,
            ),
            max_attempts=settings.execution.max_attempts,
            resume_defaults=ResumeDefaults(
                task_kind=settings.ingestion.resume_task_kind,
                sla_tier=settings.ingestion.resume_sla_tier,
                budget_ceiling=settings.ingestion.resume_budget_ceiling,
            ),
        )

    def create_task(self, payload: TaskCreate) -> TaskView:
        """Validate input and insert a pending task; nothing is written on rejection."""

        kind = parse_task_kind(payload.task_kind)
        tier = parse_sla_tier(payload.sla_tier)
        ceiling = validate_budget_ceiling(payload.budget_ceiling)
        text = payload.input_text

        with dependency_guard("Task create"):
            if payload.content_id is not None:
                content = self.repository.get_content(content_id=payload.content_id)
                if content is None:
                    raise NotFoundError(f"Content not found: {payload.content_id}")
                if (text is None or not text.strip()) and content.status == ContentStatus.READY:
                    text = content.text
            if text is None or not text.strip():
                raise InvalidInputError("input_text is required.")

            task = self.repository.create_task(
                TaskCreate(
                    task_kind=kind.value,
                    sla_tier=tier.value,
                    input_text=text,
                    budget_ceiling=ceiling,
                    content_id=payload.content_id,
                ),
            )
        logger.info(
            "Created task %s kind=%s sla=%s budget=%d",
            task.task_id,
            kind.value,
            tier.value,
            ceiling,
        )
        return task

    def route(self, task_id: str) -> RoutedTask:
        """Decide once and persist the decision with the pending -> routed move."""

        with dependency_guard("Task routing"):
            task = self._require_task(task_id)
            if task.status != TaskStatus.PENDING:
                raise AlreadyRoutedError(
                    f"Task {task_id} cannot be routed from status={task.status.value}.",
                )
            estimate = self.engine.decide(task.task_kind, task.sla_tier, task.budget_ceiling)
            routed, decision = self.repository.record_routing_decision(
                task_id=task_id,
                estimate=estimate,
            )
        if decision.over_budget:
            logger.warning(
                "Task %s routed to %s over budget: cost=%d ceiling=%d",
                task_id,
                decision.backend,
                decision.estimated_cost,
                task.budget_ceiling,
            )
        else:
            logger.info(
                "Task %s routed to %s (estimated cost=%d latency_ms=%d)",
                task_id,
                decision.backend,
                decision.estimated_cost,
                decision.estimated_latency_ms,
            )
        return RoutedTask(task=routed, decision=decision)

    def execute(self, task_id: str) -> ExecutionOutcome:
        """Run one attempt on the decided backend and append its record.

        A retryable failure leaves the task running so the caller may call
        ``execute`` again; non-retryable failures and exhausted attempts move
        the task to failed. Both raise BackendExecutionFailureError after the
        record is written. A backend crash outside its error contract counts as
        a non-retryable failure; if the attempt cannot be recorded at all the
        task is failed rather than left running.
        """

        with dependency_guard("Task execution"):
            task = self._require_task(task_id)
            decision = self.repository.get_decision(task_id=task_id)
            records = self.repository.list_execution_records(task_id=task_id)
            if task.status == TaskStatus.PENDING or decision is None:
                raise InvalidInputError(f"Task {task_id} must be routed before execution.")
            self._start_attempt(task=task, records=records)

            try:
                outcome = self._run_attempt(
                    task=task,
                    backend=decision.backend,
                    attempt_no=len(records) + 1,
                )
            except RouterError:
                raise
            except Exception as error:
                self._abandon_attempt(task_id=task_id, reason=f"Execution aborted: {error}")
                raise
        logger.info(
            "Task %s completed on %s attempt=%d latency_ms=%d cost=%d",
            task_id,
            outcome.record.backend,
            outcome.record.attempt_no,
            outcome.record.latency_ms,
            outcome.record.cost,
        )
        return outcome

    def run_task(self, payload: TaskCreate) -> AuditTrail:
        """Create, route, and execute a task, retrying transient failures in-process."""

        task = self.create_task(payload)
        self.route(task.task_id)
        self._execute_until_settled(task.task_id)
        return self.get_audit_trail(task.task_id)

    def resume_from_content(self, request: ResumeRequest) -> AuditTrail:
        """Entry point for the external trigger fired after ingestion.

        Duplicate triggers for content whose task already left pending are
        rejected with AlreadyRoutedError instead of being reapplied.
        """

        if self.ingestion is None:
            raise RuntimeError("Resume requires an ingestion adapter.")

        content = self.ingestion.extract(
            artifact_id=request.artifact_id,
            content_id=request.content_id,
        )
        with dependency_guard("Resume task lookup"):
            existing = self.repository.find_task_for_content(content_id=content.content_id)
        if existing is not None and existing.status != TaskStatus.PENDING:
            raise AlreadyRoutedError(
                f"Content {content.content_id} already has task {existing.task_id} "
                f"in status={existing.status.value}.",
            )

        task = existing or self.create_task(
            TaskCreate(
                task_kind=request.task_kind or self.resume_defaults.task_kind,
                sla_tier=request.sla_tier or self.resume_defaults.sla_tier,
                input_text=content.text,
                budget_ceiling=(
                    request.budget_ceiling
                    if request.budget_ceiling is not None
                    else self.resume_defaults.budget_ceiling
                ),
                content_id=content.content_id,
            ),
        )
        self.route(task.task_id)
        try:
            self._execute_until_settled(task.task_id)
        except BackendExecutionFailureError as error:
            with dependency_guard("Artifact status update"):
                self.repository.update_artifact_status(
                    artifact_id=request.artifact_id,
                    status=ArtifactStatus.FAILED,
                    error_message=error.message,
                )
            raise
        with dependency_guard("Artifact status update"):
            self.repository.update_artifact_status(
                artifact_id=request.artifact_id,
                status=ArtifactStatus.READY,
            )
        return self.get_audit_trail(task.task_id)

    def get_audit_trail(self, task_id: str) -> AuditTrail:
        with dependency_guard("Audit trail read"):
            trail = self.repository.get_audit_trail(task_id=task_id)
        if trail is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return trail

    def list_routing_decisions(self, *, limit: int = 50) -> list[DecisionWithTask]:
        """Newest routing decisions, each joined with its task."""

        valid = isinstance(limit, int) and not isinstance(limit, bool)
        if not valid or not 1 <= limit <= MAX_LIST_LIMIT:
            raise InvalidInputError(f"limit must be an integer within [1, {MAX_LIST_LIMIT}].")
        with dependency_guard("Routing decision listing"):
            return self.repository.list_decisions_with_tasks(limit=limit)

    def _execute_until_settled(self, task_id: str) -> ExecutionOutcome:
        while True:
            try:
                return self.execute(task_id)
            except BackendExecutionFailureError as error:
                if not error.retryable:
                    raise
                logger.info("Retrying task %s after transient failure", task_id)

    def _require_task(self, task_id: str) -> TaskView:
        task = self.repository.get_task(task_id=task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return task

    def _start_attempt(self, *, task: TaskView, records: list[ExecutionRecordView]) -> None:
        if task.status.is_terminal:
            raise InvalidInputError(
                f"Task {task.task_id} is already {task.status.value}.",
            )
        if task.status == TaskStatus.RUNNING:
            last = records[-1] if records else None
            if last is None or last.success or not last.retryable:
                raise InvalidInputError(f"Task {task.task_id} is already running.")
            return
        moved = self.repository.transition_task(
            task_id=task.task_id,
            from_statuses=(TaskStatus.ROUTED,),
            to_status=TaskStatus.RUNNING,
        )
        if not moved:
            raise InvalidInputError(
                f"Task {task.task_id} changed state concurrently; reload and retry.",
            )

    def _run_attempt(self, *, task: TaskView, backend: str, attempt_no: int) -> ExecutionOutcome:
        request = BackendRunRequest(
            task_id=task.task_id,
            attempt_no=attempt_no,
            backend=backend,
            task_kind=task.task_kind,
            input_text=task.input_text,
        )
        try:
            result = self.backend.run(request)
        except BackendRunError as error:
            self._record_failure(task=task, backend=backend, attempt_no=attempt_no, error=error)
        except Exception as error:
            logger.exception("Backend %s crashed on task %s", backend, task.task_id)
            crash = BackendRunError(f"{type(error).__name__}: {error}", transient=False)
            self._record_failure(task=task, backend=backend, attempt_no=attempt_no, error=crash)

        completed, record = self.repository.finish_attempt(
            task_id=task.task_id,
            record=ExecutionRecordWrite(
                backend=backend,
                input_units=result.input_units,
                output_units=result.output_units,
                latency_ms=result.latency_ms,
                cost=result.cost,
                success=True,
            ),
            to_status=TaskStatus.COMPLETED,
        )
        return ExecutionOutcome(task=completed, record=record)

    def _record_failure(
        self,
        *,
        task: TaskView,
        backend: str,
        attempt_no: int,
        error: BackendRunError,
    ) -> NoReturn:
        retryable = error.transient and attempt_no < self.max_attempts
        reason = str(error)
        _, record = self.repository.finish_attempt(
            task_id=task.task_id,
            record=ExecutionRecordWrite(
                backend=backend,
                input_units=0,
                output_units=0,
                latency_ms=error.latency_ms,
                cost=error.cost,
                success=False,
                failure_reason=reason,
                retryable=retryable,
            ),
            to_status=None if retryable else TaskStatus.FAILED,
            error_message=None if retryable else reason,
        )
        logger.warning(
            "Task %s attempt %d on %s failed (retryable=%s): %s",
            task.task_id,
            record.attempt_no,
            backend,
            retryable,
            reason,
        )
        raise BackendExecutionFailureError(
            f"Attempt {record.attempt_no} on {backend} failed: {reason}",
            retryable=retryable,
            task_id=task.task_id,
        ) from error

    def _abandon_attempt(self, *, task_id: str, reason: str) -> None:
        """Fail a task whose attempt could not be recorded so it never stays running."""

        try:
            moved = self.repository.fail_task(task_id=task_id, error_message=reason)
        except SQLAlchemyError:
            logger.exception("Could not mark task %s failed after an aborted attempt", task_id)
            return
        if moved:
            logger.error("Task %s failed: %s", task_id, reason)
